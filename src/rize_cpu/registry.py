"""InstructionSet: verified opcode handlers for the Rize-1 CPU.

This module implements the registry pattern for CPU operations: every
opcode maps to exactly one frozen handler that mutates the MachineState in a
predictable, auditable way.

Opcodes:
    MOV dst src            dst (register or memory) <- src
    ADD/SUB/MUL/DIV a b [d] arithmetic, result to d or a; sets zf nf cf of
    AND/OR/XOR a b [d]     bitwise, result to d or a; sets zf nf cf of
    NOT a [d]              bitwise complement, result to d or a
    SHL/SHR a [n] [d]      shift by n (default 1), result to d or a
    ST [addr val]          memory[addr] <- val (or memory[mar] <- mdr)
    LD [dst addr]          dst <- memory[addr] (or mdr <- memory[mar])
    SWP a b                exchange two registers
    WDM rg ba xy           write pixel (x, y) with color (r, g, b, a)
    JMP target             pc <- label line (or literal line number)
    JIZ/JIN target         jump if zero / negative flag is set
    HALT                   stop the machine
    NOP                    do nothing

Every handler has the signature (MachineState, operands) -> None and raises
a RizeError on failure; a handler that raises leaves the destination
unchanged.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .cell import ByteOpResult, compute
from .decode import Opcode, Operand, OperandKind
from .errors import ExecuteError
from .registers import (
    FLAG_CARRY,
    FLAG_NEGATIVE,
    FLAG_OVERFLOW,
    FLAG_ZERO,
    MEMORY_ADDRESS_REGISTER,
    MEMORY_DATA_REGISTER,
    RegisterView,
)
from .state import MachineState
from .word import Word


logger = logging.getLogger(__name__)

Handler = Callable[[MachineState, List[Operand]], None]


class InstructionSet:
    """Verified registry of opcode handlers.

    The registry is frozen after initialization to ensure no runtime
    modifications can occur.

    Attributes:
        _handlers: Dictionary mapping opcodes to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with all opcode handlers."""
        self._handlers: Dict[Opcode, Handler] = {}
        self._frozen = False
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        """Register all opcode handlers."""
        # Data movement
        self.register(Opcode.MOV, self._op_mov)
        self.register(Opcode.LD, self._op_ld)
        self.register(Opcode.ST, self._op_st)
        self.register(Opcode.SWP, self._op_swp)

        # Arithmetic
        self.register(Opcode.ADD, self._arithmetic("add"))
        self.register(Opcode.SUB, self._arithmetic("sub"))
        self.register(Opcode.MUL, self._arithmetic("mul"))
        self.register(Opcode.DIV, self._arithmetic("div"))

        # Bitwise
        self.register(Opcode.AND, self._arithmetic("bitand"))
        self.register(Opcode.OR, self._arithmetic("bitor"))
        self.register(Opcode.XOR, self._arithmetic("bitxor"))
        self.register(Opcode.NOT, self._op_not)
        self.register(Opcode.SHL, self._shift("shl"))
        self.register(Opcode.SHR, self._shift("shr"))

        # Display
        self.register(Opcode.WDM, self._op_wdm)

        # Control flow
        self.register(Opcode.JMP, self._op_jmp)
        self.register(Opcode.JIZ, self._conditional_jump(FLAG_ZERO))
        self.register(Opcode.JIN, self._conditional_jump(FLAG_NEGATIVE))

        # Special
        self.register(Opcode.HALT, self._op_halt)
        self.register(Opcode.NOP, self._op_nop)

    def register(self, opcode: Opcode, handler: Handler) -> None:
        """Register an opcode handler.

        Args:
            opcode: Opcode to handle
            handler: Function taking (machine, operands)

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If opcode already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: instruction set is frozen")
        if opcode in self._handlers:
            raise ValueError(f"Handler already registered: {opcode.name}")
        self._handlers[opcode] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_opcodes(self) -> set:
        """Get set of all executable opcodes."""
        return set(self._handlers)

    def execute(self, machine: MachineState) -> None:
        """Execute the instruction decoded into machine.program.

        Raises:
            ExecuteError: If the opcode is unrecognized or not implemented
            RizeError: Whatever the handler reports
        """
        program = machine.program
        opcode = program.opcode
        if opcode is Opcode.NONE:
            raise ExecuteError(f"Unrecognized opcode '{program.keyword}'")

        handler = self._handlers.get(opcode)
        if handler is None:
            raise ExecuteError(f"Opcode {opcode.name} is not implemented")

        handler(machine, program.operands)

    # =========================================================================
    # Operand Helpers
    # =========================================================================

    @staticmethod
    def _value(machine: MachineState, operands: List[Operand], index: int, role: str) -> Word:
        """Resolved value of a Register/Immediate/MemAddr operand."""
        operand = operands[index]
        if not operand.is_value or operand.value is None:
            raise ExecuteError(
                f"{machine.program.opcode.name} expects a {role} value as operand {index + 1}, "
                f"got {operand.describe()}"
            )
        return operand.value

    @staticmethod
    def _register(machine: MachineState, operands: List[Operand], index: int, role: str) -> RegisterView:
        operand = operands[index]
        if operand.kind is not OperandKind.REGISTER:
            raise ExecuteError(
                f"{machine.program.opcode.name} expects a {role} register as operand {index + 1}, "
                f"got {operand.describe()}"
            )
        return machine.registers.require(operand.name)

    def _destination(
        self, machine: MachineState, operands: List[Operand], index: int
    ) -> Tuple[RegisterView, bool]:
        """Pick the destination register.

        Returns the register named by operands[index] if present, otherwise the
        first operand, together with whether the first operand is updated in
        place.
        """
        candidate = operands[index]
        if candidate.kind is OperandKind.REGISTER:
            return machine.registers.require(candidate.name), False
        if candidate.is_present:
            raise ExecuteError(
                f"{machine.program.opcode.name} destination (operand {index + 1}) must be a register, "
                f"got {candidate.describe()}"
            )
        return self._register(machine, operands, 0, "target"), True

    @staticmethod
    def _address(machine: MachineState, operands: List[Operand], index: int) -> int:
        operand = operands[index]
        if operand.kind not in (OperandKind.REGISTER, OperandKind.IMMEDIATE) or operand.value is None:
            raise ExecuteError(
                f"{machine.program.opcode.name} expects an address register or immediate as "
                f"operand {index + 1}, got {operand.describe()}"
            )
        return operand.value.value

    @staticmethod
    def _set_flags(machine: MachineState, outcome: ByteOpResult) -> None:
        registers = machine.registers
        registers.require(FLAG_ZERO).write(Word.flag(outcome.result.is_zero))
        registers.require(FLAG_NEGATIVE).write(Word.flag(outcome.result.msb))
        registers.require(FLAG_CARRY).write(Word.flag(outcome.carry))
        registers.require(FLAG_OVERFLOW).write(Word.flag(outcome.overflow))

    def _store(
        self,
        machine: MachineState,
        operation: str,
        left: Word,
        right: Optional[Word],
        dest: RegisterView,
        in_place: bool,
    ) -> None:
        """Compute left <op> right into dest and update the flags.

        The operation runs at the destination width, so the flags describe
        the value actually stored.
        """
        if in_place:
            outcome = dest.apply(operation, right)
        else:
            outcome = compute(operation, left.resize(dest.width), right)
            dest.write(outcome.result)
        self._set_flags(machine, outcome)
        logger.debug(
            "%s %s -> %s = %s", operation, outcome.previous, dest.name, outcome.result
        )

    # =========================================================================
    # Data Movement
    # =========================================================================

    def _op_mov(self, machine: MachineState, operands: List[Operand]) -> None:
        """MOV dst src - Copy a value into a register or memory cell."""
        value = self._value(machine, operands, 1, "source")
        dest = operands[0]
        if dest.kind is OperandKind.REGISTER:
            machine.registers.require(dest.name).write(value)
        elif dest.kind is OperandKind.MEMADDR:
            machine.memory.write(dest.literal, value.resize(machine.memory.width))
        else:
            raise ExecuteError(
                f"MOV destination must be a register or memory address, got {dest.describe()}"
            )

    def _op_st(self, machine: MachineState, operands: List[Operand]) -> None:
        """ST addr val - Store a value in memory.

        Without operands, stores mdr at the address held in mar.
        """
        if not operands[0].is_present and not operands[1].is_present:
            address = machine.registers.read(MEMORY_ADDRESS_REGISTER).value
            value = machine.registers.read(MEMORY_DATA_REGISTER)
        else:
            address = self._address(machine, operands, 0)
            value = self._value(machine, operands, 1, "data")
        machine.memory.write(address, value.resize(machine.memory.width))

    def _op_ld(self, machine: MachineState, operands: List[Operand]) -> None:
        """LD dst addr - Load a memory cell into a register.

        Without operands, loads the cell addressed by mar into mdr.
        """
        if not operands[0].is_present and not operands[1].is_present:
            address = machine.registers.read(MEMORY_ADDRESS_REGISTER).value
            dest = machine.registers.require(MEMORY_DATA_REGISTER)
        else:
            dest = self._register(machine, operands, 0, "destination")
            address = self._address(machine, operands, 1)
        dest.write(machine.memory.read(address))

    def _op_swp(self, machine: MachineState, operands: List[Operand]) -> None:
        """SWP a b - Exchange the contents of two registers."""
        first = self._register(machine, operands, 0, "first")
        second = self._register(machine, operands, 1, "second")
        first_value, second_value = first.read(), second.read()
        first.write(second_value)
        second.write(first_value)

    # =========================================================================
    # Arithmetic & Bitwise
    # =========================================================================

    def _arithmetic(self, operation: str) -> Handler:
        """Build a handler for `OP a b [dest]`."""
        def handler(machine: MachineState, operands: List[Operand]) -> None:
            dest, in_place = self._destination(machine, operands, 2)
            left = self._value(machine, operands, 0, "left")
            right = self._value(machine, operands, 1, "right")
            self._store(machine, operation, left, right, dest, in_place)
        return handler

    def _op_not(self, machine: MachineState, operands: List[Operand]) -> None:
        """NOT a [dest] - Bitwise complement."""
        if operands[2].is_present:
            raise ExecuteError(f"NOT takes at most 2 operands, got {operands[2].describe()} as operand 3")
        dest, in_place = self._destination(machine, operands, 1)
        value = self._value(machine, operands, 0, "source")
        self._store(machine, "bitnot", value, None, dest, in_place)

    def _shift(self, operation: str) -> Handler:
        """Build a handler for `SHL/SHR a [amount] [dest]`."""
        def handler(machine: MachineState, operands: List[Operand]) -> None:
            dest, in_place = self._destination(machine, operands, 2)
            value = self._value(machine, operands, 0, "source")
            amount_operand = operands[1]
            if not amount_operand.is_present:
                amount = Word.from_int(1, machine.word_width)
            elif amount_operand.kind in (OperandKind.IMMEDIATE, OperandKind.REGISTER):
                amount = amount_operand.value
            else:
                raise ExecuteError(
                    f"{machine.program.opcode.name} amount must be an immediate or register, "
                    f"got {amount_operand.describe()}"
                )
            self._store(machine, operation, value, amount, dest, in_place)
        return handler

    # =========================================================================
    # Display
    # =========================================================================

    def _op_wdm(self, machine: MachineState, operands: List[Operand]) -> None:
        """WDM rg ba xy - Write one pixel to the display.

        Each operand packs two bytes: high byte first, low byte second.
        """
        rg = self._value(machine, operands, 0, "red/green").value
        ba = self._value(machine, operands, 1, "blue/alpha").value
        xy = self._value(machine, operands, 2, "x/y").value

        color = [(rg >> 8) & 0xFF, rg & 0xFF, (ba >> 8) & 0xFF, ba & 0xFF]
        x, y = (xy >> 8) & 0xFF, xy & 0xFF
        machine.display.set_pixel(x, y, color)

    # =========================================================================
    # Control Flow
    # =========================================================================

    @staticmethod
    def _jump_target(machine: MachineState, operands: List[Operand]) -> int:
        target = operands[0]
        opcode = machine.program.opcode.name
        if target.kind is OperandKind.SYMBOL:
            line = machine.program.resolve_label(target.name)
            if line is None:
                raise ExecuteError(f"{opcode}: unknown label '{target.token}'")
        elif target.kind is OperandKind.IMMEDIATE:
            line = target.literal
        else:
            raise ExecuteError(f"{opcode} expects a label, got {target.describe()}")

        limit = (1 << machine.word_width) - 1
        if line > limit:
            raise ExecuteError(
                f"{opcode}: line {line} is beyond the reach of a "
                f"{machine.word_width}-bit program counter"
            )
        return line

    def _op_jmp(self, machine: MachineState, operands: List[Operand]) -> None:
        """JMP target - Unconditional jump."""
        machine.set_pc(self._jump_target(machine, operands))

    def _conditional_jump(self, flag: str) -> Handler:
        """Build a handler that jumps only while `flag` is set."""
        def handler(machine: MachineState, operands: List[Operand]) -> None:
            target = self._jump_target(machine, operands)
            if machine.flag_is_set(flag):
                machine.set_pc(target)
        return handler

    # =========================================================================
    # Special
    # =========================================================================

    def _op_halt(self, machine: MachineState, operands: List[Operand]) -> None:
        """HALT - Stop execution."""
        machine.halted = True

    def _op_nop(self, machine: MachineState, operands: List[Operand]) -> None:
        """NOP - No operation."""


# Singleton instruction set
_instruction_set: Optional[InstructionSet] = None


def get_instruction_set() -> InstructionSet:
    """Get the singleton InstructionSet instance."""
    global _instruction_set
    if _instruction_set is None:
        _instruction_set = InstructionSet()
    return _instruction_set
