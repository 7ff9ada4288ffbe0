"""MachineState: the shared state every pipeline stage works on.

State Components:
    - config: Static machine configuration
    - registers: pc, mar, mdr, flags and general purpose registers
    - memory: Sparse, bounds-checked data memory
    - program: Program text, labels and the last decoded instruction
    - display: Pixel store written by WDM
    - halted: Set by HALT during Execute

Stages receive the state explicitly instead of reaching for globals.
Observers that must not block a running stage take a snapshot(), which
reads each cell atomically and returns plain Python values.
"""

from dataclasses import dataclass, field
from typing import Optional

from .config import MachineConfig
from .display import DisplayMemory, PixelStore
from .memory import Memory
from .program import ProgramState
from .registers import (
    FLAGS,
    PROGRAM_COUNTER,
    RegisterFile,
    create_register_file,
)
from .word import Word


@dataclass
class MachineState:
    """Registers, memory, program and pixel store of one Rize-1 machine.

    Attributes:
        config: Machine configuration
        registers: Register file (empty until setup_registers() runs)
        memory: Data memory
        program: Loaded program
        display: Pixel store for WDM
        halted: Whether Execute requested a halt
    """
    config: MachineConfig = field(default_factory=MachineConfig)
    registers: RegisterFile = field(default_factory=RegisterFile)
    memory: Optional[Memory] = None
    program: ProgramState = field(default_factory=ProgramState)
    display: Optional[PixelStore] = None
    halted: bool = False

    def __post_init__(self):
        if self.memory is None:
            self.memory = Memory(self.config.memory_capacity, self.config.word_width)
        if self.display is None:
            self.display = DisplayMemory(self.config.display_width, self.config.display_height)

    @property
    def word_width(self) -> int:
        return self.config.word_width

    def word(self, value: int) -> Word:
        """A Word of the machine width, truncating the value."""
        return Word.from_int(value, self.config.word_width)

    def setup_registers(self) -> None:
        """Populate the register file for the configured machine shape."""
        self.registers = create_register_file(self.config.word_width, self.config.gp_registers)

    def get_pc(self) -> int:
        return self.registers.read(PROGRAM_COUNTER).value

    def set_pc(self, value: int) -> None:
        self.registers.require(PROGRAM_COUNTER).write(self.word(value))

    def flag_is_set(self, name: str) -> bool:
        return self.registers.read(name).is_set

    def load_program(self, source: str, name: str = "<inline>") -> None:
        """Replace the program and reset the program counter to 0."""
        self.program = ProgramState.load(source, name)
        self.halted = False
        if self.registers.is_ready:
            self.set_pc(0)

    def snapshot(self) -> dict:
        """Create a plain-data snapshot of the current state for tracing.

        Returns:
            Dictionary with registers, flags, pc, memory and halted
        """
        registers = self.registers.snapshot()
        return {
            "registers": {k: v for k, v in registers.items() if k not in FLAGS},
            "flags": {k: bool(registers[k]) for k in FLAGS if k in registers},
            "pc": registers.get(PROGRAM_COUNTER, 0),
            "memory": self.memory.snapshot(),
            "halted": self.halted,
        }


def create_machine_state(
    config: Optional[MachineConfig] = None,
    display: Optional[PixelStore] = None,
) -> MachineState:
    """Create a machine with empty registers and no program.

    Args:
        config: Machine configuration (defaults if None), validated here
        display: Pixel store (a fresh DisplayMemory if None)

    Returns:
        MachineState awaiting register setup
    """
    config = (config or MachineConfig()).validate()
    return MachineState(config=config, display=display)
