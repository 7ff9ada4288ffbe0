#!/usr/bin/env python3
"""Rize-1 Command Line Interface.

Run assembly programs with the Rize-1 emulator.

Usage:
    python main.py --program programs/sum_1_to_10.azm
    python main.py --program programs/red_square.azm --word-width 32 --trace
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from rize_cpu import MachineConfig, RizeCPU, load_config


def build_config(args: argparse.Namespace) -> MachineConfig:
    """Config file (if any) with per-field flag overrides applied."""
    config = load_config(args.config) if args.config else MachineConfig()
    return config.replace(
        word_width=args.word_width,
        gp_registers=args.registers,
        memory_capacity=args.memory,
        max_cycles=args.max_cycles,
        autostep_lines=args.autostep_lines,
    )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Rize-1: Configurable-Width CPU Emulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run the sum program
    python main.py --program programs/sum_1_to_10.azm

    # Run with full trace output
    python main.py --program programs/countdown.azm --trace

    # Run on a 32-bit machine with 8 general purpose registers
    python main.py --program programs/sum_1_to_10.azm --word-width 32 --registers 8

    # Run inline assembly
    python main.py --inline "MOV ga 42; HALT"
        """
    )

    parser.add_argument(
        "--program", "-p",
        type=str,
        help="Path to assembly program file (.azm)"
    )
    parser.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline assembly (separate lines with ;)"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        help="JSON file with machine configuration"
    )
    parser.add_argument(
        "--word-width", "-w",
        type=int,
        help="Word width in bits (8, 16, 32, 64 or 128). Default: 16"
    )
    parser.add_argument(
        "--registers", "-r",
        type=int,
        help="Number of general purpose registers. Default: 4"
    )
    parser.add_argument(
        "--memory",
        type=int,
        help="Memory capacity in cells. Default: 2048"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        help="Maximum execution cycles (safety limit). Default: 10000"
    )
    parser.add_argument(
        "--autostep",
        action="store_true",
        help="Run in auto-step batches instead of one cycle at a time"
    )
    parser.add_argument(
        "--autostep-lines",
        type=int,
        help="Cycles per auto-step batch. Default: 20"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (final registers only)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging verbosity. Default: WARNING"
    )

    args = parser.parse_args(argv)

    # Validate arguments
    if not args.program and not args.inline:
        parser.error("Either --program or --inline is required")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 2

    # Load program
    if args.program:
        program_path = Path(args.program)
        if not program_path.exists():
            print(f"Error: Program file not found: {args.program}")
            return 1
        source = program_path.read_text()
        name = program_path.name
        if not args.quiet:
            print(f"Loading program: {args.program}")
    else:
        # Inline assembly
        source = args.inline.replace(";", "\n")
        name = "<inline>"
        if not args.quiet:
            print("Running inline assembly")

    cpu = RizeCPU(config)
    cpu.load_program(source, name)

    # Run
    if not args.quiet:
        print("-" * 60)
        print("Executing...")
        print("-" * 60)

    try:
        if args.autostep:
            cpu.start_autostep()
            ticks = 0
            while not cpu.is_halted():
                if ticks * config.autostep_lines >= config.max_cycles:
                    raise RuntimeError(f"Max cycles ({config.max_cycles}) exceeded")
                cpu.tick()
                ticks += 1
        else:
            cpu.run()
    except RuntimeError as e:
        print(f"Execution error: {e}")

    # Output
    summary = cpu.get_summary()
    if args.trace:
        cpu.print_trace()
    elif not args.quiet:
        print()
        print(f"Cycles: {summary['cycles']}")
        print(f"Halted: {summary['halted']}")
        print(f"Registers: {summary['registers']}")
        print(f"Flags: {summary['flags']}")
        if summary['error']:
            print(f"Error: {summary['error']['kind']}: {summary['error']['message']}")
    else:
        # Quiet mode - just print non-zero general purpose registers
        regs = cpu.dump_registers()
        for reg in cpu.machine.registers.general_purpose():
            if regs[reg] != 0:
                print(f"{reg}={regs[reg]}")

    # Exit code: 0 only for a clean halt
    return 0 if cpu.is_halted() and summary['error'] is None else 1


if __name__ == "__main__":
    sys.exit(main())
