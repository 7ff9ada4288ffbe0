"""RizeCPU: Main CPU orchestrator for the Rize-1 virtual machine.

This module drives the cycle pipeline as an explicit state machine:

    STARTUP -> FETCH -> DECODE -> EXECUTE -> (FETCH | AUTOSTEP | HALT)

The CPU can be advanced one stage at a time (advance), one full cycle at a
time (step), in auto-step batches (tick) or straight to HALT (run). Any
stage failure halts the machine immediately; the error is kept as
last_error and recorded in the execution trace.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, List, Optional, Tuple

from .config import MachineConfig
from .display import DisplayMemory, PixelStore
from .errors import RizeError
from .pipeline import decode, execute, fetch
from .registers import FLAGS
from .registry import InstructionSet, get_instruction_set
from .state import MachineState, create_machine_state


logger = logging.getLogger(__name__)


class CycleStage(Enum):
    """Pipeline stages of the CPU state machine."""
    STARTUP = "Startup"
    FETCH = "Fetch"
    DECODE = "Decode"
    EXECUTE = "Execute"
    AUTOSTEP = "AutoStep"
    HALT = "Halt"


@dataclass
class TraceEntry:
    """Single entry in the execution trace.

    Captures one fetch-decode-execute cycle for auditability and debugging.

    Attributes:
        cycle: Cycle number (0-indexed)
        pc: Program counter when the cycle started
        line: Instruction line that was fetched
        line_number: 1-based source line number
        opcode: Decoded opcode name ("" if decode never ran)
        operands: Raw operand tokens
        pre_state: State before the cycle (empty when tracing is off)
        post_state: State after the cycle (empty when tracing is off)
        error: Error message if the cycle failed
    """
    cycle: int
    pc: int
    line: str
    line_number: int
    opcode: str
    operands: List[str] = field(default_factory=list)
    pre_state: dict = field(default_factory=dict)
    post_state: dict = field(default_factory=dict)
    error: Optional[str] = None


class RizeCPU:
    """Configurable-width CPU emulator with textual assembly.

    Attributes:
        config: Machine configuration
        machine: Registers, memory, program and pixel store
        instruction_set: Frozen opcode registry
        stage: Current pipeline stage
        last_error: Error that halted the machine, if any
        trace: Bounded execution trace
    """

    def __init__(
        self,
        config: Optional[MachineConfig] = None,
        display: Optional[PixelStore] = None,
        instruction_set: Optional[InstructionSet] = None,
    ):
        """Initialize the CPU in the Startup stage.

        Args:
            config: Machine configuration (defaults if None)
            display: Pixel store for WDM (a fresh DisplayMemory if None)
            instruction_set: Opcode registry (the shared one if None)
        """
        self.config = (config or MachineConfig()).validate()
        self.machine: MachineState = create_machine_state(self.config, display)
        self.instruction_set = instruction_set or get_instruction_set()
        self.stage = CycleStage.STARTUP
        self.last_error: Optional[RizeError] = None
        self.cycle_count = 0
        self.trace: Deque[TraceEntry] = deque(maxlen=self.config.trace_limit)
        self._autostep = False
        self._cycle_start: Optional[Tuple[int, dict]] = None
        self._last_entry: Optional[TraceEntry] = None
        self._lock = threading.RLock()

    @property
    def display(self) -> PixelStore:
        return self.machine.display

    @property
    def tracing(self) -> bool:
        return self.config.trace_limit > 0

    # =========================================================================
    # Program Loading
    # =========================================================================

    def load_program(self, source: str, name: str = "<inline>") -> None:
        """Load an assembly program from source text.

        Resets the program counter, cycle count, trace and last error. A CPU
        that already left Startup resumes at Fetch.

        Args:
            source: Assembly source code
            name: Identifier used in logs
        """
        with self._lock:
            self.machine.load_program(source, name)
            self.last_error = None
            self.cycle_count = 0
            self.trace.clear()
            self._cycle_start = None
            self._last_entry = None
            if self.stage is not CycleStage.STARTUP:
                self.stage = self._resume_stage()

    def reset(self) -> None:
        """Return to Startup with zeroed registers and memory.

        The loaded program is kept; the pixel store is restored to its
        initial image when it supports reset().
        """
        with self._lock:
            program = self.machine.program
            display = self.machine.display
            if isinstance(display, DisplayMemory):
                display.reset()
            self.machine = create_machine_state(self.config, display)
            self.machine.load_program(program.source, program.name)
            self.stage = CycleStage.STARTUP
            self.last_error = None
            self.cycle_count = 0
            self.trace.clear()
            self._autostep = False
            self._cycle_start = None
            self._last_entry = None
            logger.info("CPU reset")

    # =========================================================================
    # State Machine
    # =========================================================================

    def boot(self) -> CycleStage:
        """Run register setup if the CPU is still in Startup."""
        with self._lock:
            if self.stage is CycleStage.STARTUP:
                self._run_stage(self._startup)
            return self.stage

    def advance(self) -> CycleStage:
        """Run exactly one pipeline stage.

        In the AutoStep stage this runs one auto-step batch.

        Returns:
            The stage the CPU is in afterwards
        """
        with self._lock:
            stage = self.stage
            if stage is CycleStage.STARTUP:
                self._run_stage(self._startup)
            elif stage is CycleStage.FETCH:
                self._run_stage(self._fetch)
            elif stage is CycleStage.DECODE:
                self._run_stage(self._decode)
            elif stage is CycleStage.EXECUTE:
                self._run_stage(self._execute)
            elif stage is CycleStage.AUTOSTEP:
                self._autostep_batch()
            logger.debug("Stage %s -> %s", stage.value, self.stage.value)
            return self.stage

    def step(self) -> Optional[TraceEntry]:
        """Run stages until the current cycle completes or the CPU halts.

        Returns:
            TraceEntry for the cycle, or None if no instruction was run
            (end of program or already halted)
        """
        with self._lock:
            if self.stage is CycleStage.STARTUP:
                self.boot()
            if self.stage is CycleStage.HALT:
                return None
            if self.stage is CycleStage.AUTOSTEP:
                self.stage = CycleStage.FETCH

            self._last_entry = None
            while True:
                stage = self.stage
                self.advance()
                if stage is CycleStage.EXECUTE or self.stage is CycleStage.HALT:
                    break
            return self._last_entry

    def start_autostep(self) -> None:
        """Enter AutoStep; a cycle in progress finishes first."""
        with self._lock:
            if self.stage is CycleStage.STARTUP:
                self.boot()
            self._autostep = True
            if self.stage is CycleStage.FETCH:
                self.stage = CycleStage.AUTOSTEP
            logger.info("Auto-step enabled (%d lines per tick)", self.config.autostep_lines)

    def stop_autostep(self) -> None:
        """Leave AutoStep and go back to manual stepping."""
        with self._lock:
            self._autostep = False
            if self.stage is CycleStage.AUTOSTEP:
                self.stage = CycleStage.FETCH
            logger.info("Auto-step disabled")

    def tick(self) -> int:
        """Run one auto-step batch if the CPU is in AutoStep.

        Returns:
            Number of cycles attempted in this tick
        """
        with self._lock:
            if self.stage is not CycleStage.AUTOSTEP:
                return 0
            return self._autostep_batch()

    def run(self, max_cycles: Optional[int] = None) -> List[TraceEntry]:
        """Run the CPU until HALT or max cycles.

        Args:
            max_cycles: Override maximum cycles (uses config default if None)

        Returns:
            Execution trace

        Raises:
            RuntimeError: If max cycles exceeded (safety limit)
        """
        limit = max_cycles if max_cycles is not None else self.config.max_cycles
        with self._lock:
            self.boot()
            executed = 0
            while self.stage is not CycleStage.HALT:
                if executed >= limit:
                    raise RuntimeError(f"Max cycles ({limit}) exceeded")
                self.step()
                executed += 1
            return list(self.trace)

    def _resume_stage(self) -> CycleStage:
        return CycleStage.AUTOSTEP if self._autostep else CycleStage.FETCH

    def _autostep_batch(self) -> int:
        executed = 0
        while executed < self.config.autostep_lines and self.stage is not CycleStage.HALT:
            self.step()
            executed += 1
        return executed

    # =========================================================================
    # Stages
    # =========================================================================

    def _run_stage(self, stage_fn) -> None:
        """Run one stage, turning any failure into an immediate halt."""
        stage = self.stage
        try:
            stage_fn()
        except RizeError as error:
            self._fail(stage, error)
        except Exception:
            logger.exception("Unexpected failure in %s stage", stage.value)
            self._halt()
            raise

    def _startup(self) -> None:
        self.machine.setup_registers()
        self.machine.set_pc(0)
        logger.info(
            "Rize-1 ready: %d-bit words, %d general purpose registers, %d memory cells",
            self.config.word_width, self.config.gp_registers, self.config.memory_capacity
        )
        self.stage = self._resume_stage()

    def _fetch(self) -> None:
        pc = self.machine.get_pc()
        self._cycle_start = (pc, self.machine.snapshot() if self.tracing else {})
        line = fetch(self.machine)
        if line is None:
            self._cycle_start = None
            logger.info("End of program %s after %d cycles", self.machine.program.name, self.cycle_count)
            self._halt()
            return
        self.stage = CycleStage.DECODE

    def _decode(self) -> None:
        decode(self.machine)
        self.stage = CycleStage.EXECUTE

    def _execute(self) -> None:
        execute(self.machine, self.instruction_set)
        self._record()
        self.cycle_count += 1
        if self.machine.halted:
            logger.info("HALT after %d cycles", self.cycle_count)
            self._halt()
        else:
            self.stage = self._resume_stage()

    def _halt(self) -> None:
        self.machine.halted = True
        self.stage = CycleStage.HALT

    def _fail(self, stage: CycleStage, error: RizeError) -> None:
        program = self.machine.program
        logger.error(
            "%s stage failed at pc=%s, line %d %r (opcode %s, operands %s): %s",
            stage.value,
            self._safe_pc(),
            program.line_number,
            program.line,
            program.keyword or "-",
            program.operand_tokens(),
            error,
        )
        self.last_error = error
        self._record(error=str(error))
        self._halt()

    def _safe_pc(self) -> Optional[int]:
        snapshot = self.machine.registers.snapshot()
        return snapshot.get("pc")

    def _record(self, error: Optional[str] = None) -> None:
        if self._cycle_start is None:
            return
        pc, pre_state = self._cycle_start
        program = self.machine.program
        entry = TraceEntry(
            cycle=self.cycle_count,
            pc=pc,
            line=program.line,
            line_number=program.line_number,
            opcode=program.opcode.name if program.keyword else "",
            operands=program.operand_tokens(),
            pre_state=pre_state,
            post_state=self.machine.snapshot() if self.tracing else {},
            error=error,
        )
        self.trace.append(entry)
        self._last_entry = entry
        self._cycle_start = None

    # =========================================================================
    # Observers
    # =========================================================================

    def get_register(self, reg: str) -> int:
        """Get value of a register.

        Args:
            reg: Register name, including section views (e.g. "ga", "gal")

        Returns:
            Register value

        Raises:
            RegisterReadError: If no register has that name
        """
        return self.machine.registers.read(reg).value

    def dump_registers(self) -> Dict[str, int]:
        """Get all non-flag register values."""
        return {
            name: value
            for name, value in self.machine.registers.snapshot().items()
            if name not in FLAGS
        }

    def get_flags(self) -> Dict[str, bool]:
        """Get CPU flags (zf, nf, cf, of)."""
        registers = self.machine.registers.snapshot()
        return {name: bool(registers[name]) for name in FLAGS if name in registers}

    def get_pc(self) -> int:
        return self.machine.registers.snapshot().get("pc", 0)

    def get_memory(self, address: int) -> int:
        return self.machine.memory.read(address).value

    def get_cycle_count(self) -> int:
        return self.cycle_count

    def is_halted(self) -> bool:
        return self.stage is CycleStage.HALT

    def snapshot(self) -> dict:
        """Plain-data view of the CPU for observers.

        Does not take the CPU lock, so it can be called while a stage runs.
        """
        snapshot = self.machine.snapshot()
        snapshot.update({
            "stage": self.stage.value,
            "cycles": self.cycle_count,
            "line": self.machine.program.line,
            "error": str(self.last_error) if self.last_error else None,
        })
        return snapshot

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("RIZE-1 EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            print(f"\n[Cycle {entry.cycle}] {status}")
            print(f"  Line {entry.line_number}: {entry.line}")
            print(f"  Opcode: {entry.opcode or '-'}  Operands: {entry.operands}")

            # Show register changes
            pre_regs = entry.pre_state.get("registers", {})
            post_regs = entry.post_state.get("registers", {})
            changes = []
            for reg in sorted(pre_regs.keys()):
                if reg == "pc":
                    continue
                if pre_regs[reg] != post_regs.get(reg, pre_regs[reg]):
                    changes.append(f"{reg}: {pre_regs[reg]} → {post_regs[reg]}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")

            # Show PC change
            pre_pc = entry.pre_state.get("pc", entry.pc)
            post_pc = entry.post_state.get("pc", pre_pc)
            if pre_pc != post_pc:
                print(f"  PC: {pre_pc} → {post_pc}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        print(f"  Registers: {self.dump_registers()}")
        print(f"  Flags: {self.get_flags()}")
        print(f"  PC: {self.get_pc()}")
        print(f"  Cycles: {self.get_cycle_count()}")
        print(f"  Stage: {self.stage.value}")
        if self.last_error:
            print(f"  Error: {self.last_error}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        error = None
        if self.last_error is not None:
            error = {"kind": self.last_error.kind.value, "message": self.last_error.message}
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "stage": self.stage.value,
            "registers": self.dump_registers(),
            "flags": self.get_flags(),
            "pc": self.get_pc(),
            "trace_length": len(self.trace),
            "error": error,
            "errors": [e.error for e in self.trace if e.error],
        }
