"""Fetch, Decode and Execute stage functions.

Each stage takes the MachineState explicitly and either completes or
raises a RizeError. Stages never catch errors themselves: the CPU
orchestrator turns any failure into an immediate halt.

    FETCH:   pc -> next instruction line (skipping blanks, comments, labels)
    DECODE:  line -> opcode + three classified, resolved operands
    EXECUTE: opcode -> registry handler -> registers / memory / display
"""

import logging
from typing import Optional

from .decode import MAX_OPERANDS, Opcode, Operand, OperandKind, classify, is_instruction_line, tokenize
from .errors import DecodeError, FetchError, RegisterReadError
from .registry import InstructionSet, get_instruction_set
from .state import MachineState


logger = logging.getLogger(__name__)


def _store_pc(machine: MachineState, index: int) -> None:
    limit = (1 << machine.word_width) - 1
    if index > limit:
        raise FetchError(
            f"Line {index} is beyond the reach of a {machine.word_width}-bit program counter"
        )
    machine.set_pc(index)


def fetch(machine: MachineState) -> Optional[str]:
    """Capture the next instruction line and advance the program counter.

    Blank, comment and label lines are skipped; the counter advances past
    each of them and past the captured line.

    Returns:
        The captured line, or None at end of program text

    Raises:
        FetchError: If the program counter cannot address the next line
    """
    program = machine.program
    lines = program.lines
    index = machine.get_pc()

    while index < len(lines):
        line = lines[index]
        index += 1
        if is_instruction_line(line):
            _store_pc(machine, index)
            program.clear_instruction()
            program.line = line.strip()
            program.line_number = index
            logger.debug("Fetched line %d: %s", index, program.line)
            return program.line

    _store_pc(machine, index)
    logger.debug("Reached end of program %s", program.name)
    return None


def resolve_operand(machine: MachineState, operand: Operand) -> Operand:
    """Attach the current value to Register, Immediate and MemAddr operands.

    Raises:
        RegisterReadError: If a register operand names no register
        MemoryReadError: If a memory operand is out of range
    """
    if operand.kind is OperandKind.REGISTER:
        view = machine.registers.get(operand.name)
        if view is None:
            raise RegisterReadError(f"Cannot get a register named \"{operand.token}\"")
        operand.value = view.read()
    elif operand.kind is OperandKind.IMMEDIATE:
        operand.value = machine.word(operand.literal)
    elif operand.kind is OperandKind.MEMADDR:
        operand.value = machine.memory.read(operand.literal)
    return operand


def decode(machine: MachineState) -> None:
    """Decode the last fetched line into the program state.

    Raises:
        DecodeError: If the line has no opcode or too many operands
        RegisterReadError, MemoryReadError: If an operand cannot be resolved
    """
    program = machine.program
    tokens = tokenize(program.line)
    if not tokens:
        raise DecodeError(f"No opcode found in line {program.line!r}")

    keyword, args = tokens[0], tokens[1:]
    if len(args) > MAX_OPERANDS:
        raise DecodeError(
            f"{keyword} takes at most {MAX_OPERANDS} operands, got {len(args)}: {' '.join(args)}"
        )

    program.keyword = keyword
    program.opcode = Opcode.parse(keyword)
    operands = [classify(token) for token in args]
    operands += [Operand() for _ in range(MAX_OPERANDS - len(operands))]
    program.operands = operands

    for operand in operands:
        resolve_operand(machine, operand)

    program.refresh_labels()
    logger.debug(
        "Decoded %s %s", program.opcode.name, [op.describe() for op in operands if op.is_present]
    )


def execute(machine: MachineState, instruction_set: Optional[InstructionSet] = None) -> None:
    """Run the decoded instruction.

    Raises:
        RizeError: Whatever the opcode handler reports
    """
    (instruction_set or get_instruction_set()).execute(machine)
