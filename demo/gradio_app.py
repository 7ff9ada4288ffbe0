"""Rize-1 Interactive Demo.

A Gradio web interface for stepping through Rize-1 programs.

Usage:
    cd /path/to/rize-cpu
    python demo/gradio_app.py

Features:
    - Write or load assembly programs
    - Pick the word width and register count
    - Advance one stage, one cycle, one auto-step batch, or run to HALT
    - Watch registers, flags, memory and the framebuffer change
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
import numpy as np
from rize_cpu import MachineConfig, RizeCPU


PROGRAMS_DIR = Path(__file__).parent.parent / "programs"


# =============================================================================
# Example Programs
# =============================================================================

def _example_programs() -> dict:
    examples = {path.stem: path.read_text() for path in sorted(PROGRAMS_DIR.glob("*.azm"))}
    examples["Custom"] = ""
    return examples


EXAMPLE_PROGRAMS = _example_programs()
DEFAULT_EXAMPLE = next(iter(EXAMPLE_PROGRAMS))


# =============================================================================
# Rendering
# =============================================================================

def render_display(cpu: RizeCPU) -> np.ndarray:
    """Framebuffer as an (height, width, 4) uint8 array."""
    display = cpu.display
    raw = np.frombuffer(display.to_bytes(), dtype=np.uint8)
    return raw.reshape(display.height, display.width, 4)


def render_registers(cpu: RizeCPU) -> str:
    snapshot = cpu.snapshot()
    lines = [
        f"STAGE: {snapshot['stage']}   CYCLES: {snapshot['cycles']}",
        "=" * 30,
    ]
    width = cpu.config.word_width
    for reg, value in snapshot["registers"].items():
        marker = " *" if value != 0 else ""
        lines.append(f"  {reg:>4}: {value:>10}  0x{value:0{width // 4}x}{marker}")

    lines.append("")
    lines.append("FLAGS")
    lines.append("-" * 30)
    for flag, value in snapshot["flags"].items():
        lines.append(f"  {flag}: {value}")

    if snapshot["line"]:
        lines.append("")
        lines.append(f"LINE: {snapshot['line']}")
    if snapshot["error"]:
        lines.append("")
        lines.append(f"ERROR: {snapshot['error']}")
    return "\n".join(lines)


def render_memory(cpu: RizeCPU) -> str:
    cells = cpu.machine.memory.snapshot()
    if not cells:
        return "(all cells zero)"
    return "\n".join(f"  0x{addr:04x}: {value}" for addr, value in cells.items())


def render_trace(cpu: RizeCPU, limit: int = 100) -> str:
    trace = list(cpu.trace)[-limit:]
    lines = ["EXECUTION TRACE", "=" * 60]
    for entry in trace:
        status = "OK" if not entry.error else f"ERROR: {entry.error}"
        lines.append(f"[{entry.cycle:>5}] line {entry.line_number:>3}: {entry.line:<24} {status}")
    if len(cpu.trace) > limit:
        lines.append(f"... ({len(cpu.trace) - limit} earlier entries hidden)")
    return "\n".join(lines)


def render(cpu: RizeCPU, message: str = "") -> tuple:
    if cpu is None:
        return None, "Load a program first", "", "", None, ""
    return cpu, message, render_registers(cpu), render_memory(cpu), render_display(cpu), render_trace(cpu)


# =============================================================================
# Execution Functions
# =============================================================================

def load_program(program: str, word_width: str, gp_registers: int) -> tuple:
    """Create a fresh CPU with the program loaded.

    Returns:
        Tuple of (cpu, status, registers, memory, framebuffer, trace)
    """
    if not program.strip():
        return render(None)
    try:
        config = MachineConfig(word_width=int(word_width), gp_registers=int(gp_registers))
        cpu = RizeCPU(config)
    except ValueError as e:
        return None, f"Error: {e}", "", "", None, ""
    cpu.load_program(program, "demo")
    cpu.boot()
    return render(cpu, "Program loaded")


def advance_stage(cpu: RizeCPU) -> tuple:
    if cpu is None:
        return render(None)
    stage = cpu.advance()
    return render(cpu, f"Now in {stage.value}")


def step_cycle(cpu: RizeCPU) -> tuple:
    if cpu is None:
        return render(None)
    entry = cpu.step()
    if entry is None:
        return render(cpu, "No instruction executed")
    return render(cpu, f"Executed line {entry.line_number}: {entry.line}")


def autostep_tick(cpu: RizeCPU) -> tuple:
    if cpu is None:
        return render(None)
    cpu.start_autostep()
    executed = cpu.tick()
    return render(cpu, f"Auto-step ran {executed} cycles")


def run_to_halt(cpu: RizeCPU, max_cycles: int) -> tuple:
    if cpu is None:
        return render(None)
    try:
        cpu.run(max_cycles=int(max_cycles))
    except RuntimeError as e:
        return render(cpu, f"Runtime: {e}")
    return render(cpu, "Halted")


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="Rize-1 Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # Rize-1: Configurable-Width CPU Emulator

        Assembly text runs directly through a visible
        `Fetch -> Decode -> Execute` pipeline. Any error halts the machine.
        """)

        cpu_state = gr.State(None)

        with gr.Row():
            with gr.Column(scale=2):
                # Program input
                gr.Markdown("### Assembly Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value=DEFAULT_EXAMPLE,
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS[DEFAULT_EXAMPLE],
                    label="Source Code",
                    lines=18,
                    placeholder="Enter assembly code here..."
                )

                # Settings
                gr.Markdown("### Machine")

                with gr.Row():
                    width_radio = gr.Radio(
                        choices=["8", "16", "32", "64", "128"],
                        value="16",
                        label="Word Width"
                    )
                    registers_slider = gr.Slider(
                        minimum=1,
                        maximum=26,
                        value=4,
                        step=1,
                        label="General Purpose Registers"
                    )

                max_cycles = gr.Slider(
                    minimum=100,
                    maximum=100000,
                    value=10000,
                    step=100,
                    label="Max Cycles (Run)"
                )

                load_button = gr.Button("Load Program", variant="primary")
                with gr.Row():
                    stage_button = gr.Button("Advance Stage")
                    step_button = gr.Button("Step Cycle")
                    tick_button = gr.Button("Auto-step Tick")
                    run_button = gr.Button("Run to Halt")

            with gr.Column(scale=3):
                status_output = gr.Textbox(label="Status", interactive=False)
                with gr.Row():
                    registers_output = gr.Textbox(
                        label="Registers",
                        lines=16,
                        interactive=False
                    )
                    memory_output = gr.Textbox(
                        label="Memory (non-zero cells)",
                        lines=16,
                        interactive=False
                    )
                display_output = gr.Image(label="Framebuffer", image_mode="RGBA")
                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=12,
                    interactive=False
                )

        # ISA Reference
        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Instruction | Description | Example |
            |-------------|-------------|---------|
            | `MOV dst src` | Copy into register or memory | `MOV ga 42`, `MOV 0x10 ga` |
            | `ADD/SUB/MUL/DIV a b [d]` | Arithmetic into `d` (or `a`) | `ADD ga gb gc` |
            | `AND/OR/XOR a b [d]` | Bitwise | `AND ga 255` |
            | `NOT a [d]` | Complement | `NOT ga gb` |
            | `SHL/SHR a [n] [d]` | Shift (default 1) | `SHL ga 4` |
            | `ST [addr val]` | Store (or `memory[mar] = mdr`) | `ST 12 ga` |
            | `LD [dst addr]` | Load (or `mdr = memory[mar]`) | `LD gb 12` |
            | `SWP a b` | Exchange registers | `SWP ga gb` |
            | `WDM rg ba xy` | Write one pixel | `WDM ga gb gc` |
            | `JMP/JIZ/JIN .label` | Jump (always / zero / negative) | `JIZ .done` |
            | `HALT`, `NOP` | Stop / nothing | `HALT` |

            **Registers**: `pc`, `mar`, `mdr`, `ga`..`gz` (`gal`/`gah` halves)
            **Flags**: `zf` zero, `nf` negative, `cf` carry, `of` overflow
            **Operands**: `ga` register, `42` immediate, `0x2A` memory, `.loop` label
            """)

        outputs = [
            cpu_state, status_output, registers_output,
            memory_output, display_output, trace_output
        ]

        # Event handlers
        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )
        load_button.click(
            fn=load_program,
            inputs=[program_input, width_radio, registers_slider],
            outputs=outputs
        )
        stage_button.click(fn=advance_stage, inputs=[cpu_state], outputs=outputs)
        step_button.click(fn=step_cycle, inputs=[cpu_state], outputs=outputs)
        tick_button.click(fn=autostep_tick, inputs=[cpu_state], outputs=outputs)
        run_button.click(fn=run_to_halt, inputs=[cpu_state, max_cycles], outputs=outputs)

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
