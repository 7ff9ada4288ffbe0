"""Register file for the Rize-1 CPU.

Registers:
    - pc: Program counter (index of the next source line to scan)
    - mar, mdr: Memory address / data registers
    - zf, nf, cf, of: Zero, negative, carry and overflow flags (1 bit)
    - ga, gb, ...: General purpose registers ("g" + letter)

General purpose registers can be addressed through a section suffix:
    gax -> full word, gal -> low half, gah -> high half

A section view shares the base register's cell; it only changes how many
bits are read and written. Halves exist for word widths of 16 and above.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from string import ascii_lowercase
from typing import Dict, List, Optional, Tuple

from .cell import ByteCell, ByteOpResult, FlaggedOperations, compute
from .errors import RegisterReadError
from .word import FLAG_WIDTH, WIDTHS, Word, WordLike


logger = logging.getLogger(__name__)

PROGRAM_COUNTER = "pc"
MEMORY_ADDRESS_REGISTER = "mar"
MEMORY_DATA_REGISTER = "mdr"

FLAG_ZERO = "zf"
FLAG_NEGATIVE = "nf"
FLAG_CARRY = "cf"
FLAG_OVERFLOW = "of"
FLAGS = (FLAG_ZERO, FLAG_NEGATIVE, FLAG_CARRY, FLAG_OVERFLOW)

GP_PREFIX = "g"


class RegisterKind(Enum):
    SPECIAL = "special"
    FLAG = "flag"
    GENERAL = "general"


class Section(Enum):
    """Addressable view of a general purpose register."""
    FULL = "x"
    LOW = "l"
    HIGH = "h"

    @classmethod
    def from_suffix(cls, suffix: str) -> Optional["Section"]:
        for section in cls:
            if section.value == suffix:
                return section
        return None


@dataclass
class Register:
    """A named ByteCell with a fixed width.

    Attributes:
        name: Lower-case register name
        width: Bit width of the register
        kind: Special, flag or general purpose
        cell: Backing storage
    """
    name: str
    width: int
    kind: RegisterKind = RegisterKind.SPECIAL
    cell: Optional[ByteCell] = None

    def __post_init__(self):
        self.name = self.name.lower()
        if self.cell is None:
            self.cell = ByteCell(Word.zero(self.width))

    @classmethod
    def normal(cls, name: str, width: int) -> "Register":
        return cls(name, width, RegisterKind.SPECIAL)

    @classmethod
    def flag(cls, name: str) -> "Register":
        return cls(name, FLAG_WIDTH, RegisterKind.FLAG)

    @classmethod
    def general(cls, name: str, width: int) -> "Register":
        return cls(name, width, RegisterKind.GENERAL)

    def read(self) -> Word:
        return self.cell.read()

    def write(self, value: WordLike) -> Word:
        """Write a value coerced to the register width; returns the previous value."""
        return self.cell.write(_coerce(value, self.width))


def _coerce(value: WordLike, width: int) -> Word:
    if isinstance(value, Word):
        return value.resize(width)
    return Word.from_int(value, width)


class RegisterView(FlaggedOperations):
    """A full-width or sectioned window onto one register.

    All reads and writes go through the register's cell, so every view of
    the same register observes the same physical bits.
    """

    def __init__(self, register: Register, section: Section = Section.FULL):
        self.register = register
        self.section = section
        if section is Section.FULL:
            self.width = register.width
            self._shift = 0
        else:
            self.width = register.width // 2
            self._shift = self.width if section is Section.HIGH else 0

    @property
    def name(self) -> str:
        if self.section is Section.FULL:
            return self.register.name
        return self.register.name + self.section.value

    @property
    def kind(self) -> RegisterKind:
        return self.register.kind

    def _extract(self, full: Word) -> Word:
        if self.section is Section.FULL:
            return full.resize(self.width)
        return Word.from_int(full.value >> self._shift, self.width)

    def _merge(self, full: Word, part: Word) -> Word:
        if self.section is Section.FULL:
            return part.resize(self.register.width)
        field_mask = ((1 << self.width) - 1) << self._shift
        merged = (full.value & ~field_mask) | (part.resize(self.width).value << self._shift)
        return Word.from_int(merged, self.register.width)

    def read(self) -> Word:
        return self._extract(self.register.read())

    def write(self, value: WordLike) -> Word:
        """Write through the view; returns the previous value of the view."""
        part = _coerce(value, self.width)
        return self.register.cell.update(
            lambda full: (self._merge(full, part), self._extract(full))
        )

    def _apply(self, operation: str, operand: Optional[WordLike]) -> ByteOpResult:
        def transform(full: Word) -> Tuple[Word, ByteOpResult]:
            outcome = compute(operation, self._extract(full), operand)
            return self._merge(full, outcome.result), outcome

        return self.register.cell.update(transform)

    def __repr__(self) -> str:
        return f"RegisterView({self.name}={self.read()})"


class RegisterFile:
    """Named collection of registers with case-insensitive lookup."""

    def __init__(self):
        self._registers: Dict[str, Register] = {}

    def insert(self, register: Register) -> None:
        """Add a register, replacing any register with the same name."""
        self._registers[register.name] = register

    def all(self) -> Dict[str, Register]:
        return dict(self._registers)

    def names(self) -> List[str]:
        return list(self._registers)

    def __contains__(self, name: str) -> bool:
        return bool(name) and self._lookup(name.lower()) is not None

    def __len__(self) -> int:
        return len(self._registers)

    @property
    def is_ready(self) -> bool:
        """True once the register set has been populated."""
        return bool(self._registers)

    def get(self, name: str) -> Optional[RegisterView]:
        """Look up a register or section view by name.

        Args:
            name: Register name, case insensitive (e.g. "PC", "ga", "gal")

        Returns:
            RegisterView, or None if no register matches
        """
        if not name:
            logger.warning("Attempted to get register with empty name")
            return None

        key = name.lower()
        view = self._lookup(key)
        if view is None:
            logger.warning(
                "Register '%s' not found. Available registers: %s", key, sorted(self._registers)
            )
        return view

    def _lookup(self, key: str) -> Optional[RegisterView]:
        register = self._registers.get(key)
        if register is not None:
            return RegisterView(register)

        # Section views: base name plus one suffix letter (e.g. "gal")
        if len(key) == 3 and key.startswith(GP_PREFIX):
            base = self._registers.get(key[:2])
            section = Section.from_suffix(key[2])
            if base is None or base.kind is not RegisterKind.GENERAL or section is None:
                return None
            if section is Section.FULL or base.width // 2 in WIDTHS:
                return RegisterView(base, section)
        return None

    def require(self, name: str) -> RegisterView:
        """Like get(), but raise RegisterReadError for an unknown name."""
        view = self.get(name)
        if view is None:
            raise RegisterReadError(f"Cannot get a register named \"{name}\"")
        return view

    def read(self, name: str) -> Word:
        return self.require(name).read()

    def snapshot(self) -> Dict[str, int]:
        """Copy every register value as a plain int (for observers)."""
        return {name: reg.read().value for name, reg in self._registers.items()}

    def general_purpose(self) -> List[str]:
        return [n for n, r in self._registers.items() if r.kind is RegisterKind.GENERAL]


def gp_register_names(count: int) -> List[str]:
    """Names of the first `count` general purpose registers (ga, gb, ...)."""
    return [GP_PREFIX + letter for letter in ascii_lowercase[:count]]


def create_register_file(word_width: int, gp_registers: int) -> RegisterFile:
    """Populate a fresh register file for the given machine shape.

    Args:
        word_width: Width of pc, mar, mdr and the general purpose registers
        gp_registers: Number of general purpose registers

    Returns:
        RegisterFile with all registers zeroed
    """
    registers = RegisterFile()

    logger.info("Setting up basic registers...")
    for name in (PROGRAM_COUNTER, MEMORY_ADDRESS_REGISTER, MEMORY_DATA_REGISTER):
        registers.insert(Register.normal(name, word_width))

    logger.info("Setting up flags...")
    for name in FLAGS:
        registers.insert(Register.flag(name))

    logger.info("Setting up %d general purpose registers...", gp_registers)
    for name in gp_register_names(gp_registers):
        registers.insert(Register.general(name, word_width))

    return registers
