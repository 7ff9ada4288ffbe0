"""Rize-1: Configurable-Width CPU Emulator with Textual Assembly.

This package implements a small virtual CPU that runs line-oriented assembly
source directly: there is no binary encoding step. Each pipeline stage reads
and writes an explicit MachineState, and any failure halts the machine.

Architecture:
    SOURCE -> FETCH -> DECODE -> EXECUTE -> STATE
                |         |         |          |
             [pc scan] [tokens]  [frozen]  [registers, memory,
                       [operands] registry]  pixel store]

Modules:
    word: Width-tagged wrapping integer values
    cell: Lock-guarded single-value cells and flagged operations
    registers: Register file with section views (gax/gal/gah)
    memory: Bounds-checked sparse memory
    display: RGBA pixel store written by WDM
    decode: Tokenizer, opcode set and operand classifier
    program: Program text and label table
    state: MachineState shared by the stages
    pipeline: Fetch/Decode/Execute stage functions
    registry: Opcode semantics
    cpu: Main RizeCPU orchestrator
    config: MachineConfig
    errors: RizeError taxonomy
"""

__version__ = "0.1.0"
__author__ = "Rize Project"

from .config import MachineConfig, load_config
from .cpu import CycleStage, RizeCPU, TraceEntry
from .display import DisplayMemory, PixelStore
from .errors import RizeError, RizeErrorKind
from .registry import InstructionSet
from .state import MachineState
from .word import Word

__all__ = [
    "CycleStage",
    "DisplayMemory",
    "InstructionSet",
    "MachineConfig",
    "MachineState",
    "PixelStore",
    "RizeCPU",
    "RizeError",
    "RizeErrorKind",
    "TraceEntry",
    "Word",
    "load_config",
]
