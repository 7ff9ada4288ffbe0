"""Tests for InstructionSet opcode semantics."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from rize_cpu import MachineConfig, RizeCPU
from rize_cpu.decode import Opcode
from rize_cpu.errors import RizeErrorKind
from rize_cpu.registry import InstructionSet, get_instruction_set


class RecordingDisplay:
    """Pixel store that remembers every set_pixel call."""

    def __init__(self):
        self.calls = []

    def set_pixel(self, x, y, color):
        self.calls.append((x, y, list(color)))


def run(source, **config):
    cpu = RizeCPU(MachineConfig(**config))
    cpu.load_program(source)
    cpu.run()
    return cpu


class TestInstructionSet:
    """Test registry structure."""

    def test_singleton(self):
        assert get_instruction_set() is get_instruction_set()

    def test_frozen(self):
        instruction_set = InstructionSet()
        assert instruction_set.is_frozen()
        with pytest.raises(RuntimeError):
            instruction_set.register(Opcode.NOP, lambda machine, operands: None)

    def test_all_opcodes_registered(self):
        expected = set(Opcode) - {Opcode.NONE}
        assert get_instruction_set().get_valid_opcodes() == expected


class TestScenarios:
    """End-to-end behaviors of single instructions."""

    def test_add(self):
        cpu = run("MOV ga 5\nADD ga 3\nHALT")
        assert cpu.get_register("ga") == 8
        assert cpu.get_flags()["zf"] is False

    def test_sub_to_zero(self):
        cpu = run("MOV ga 5\nSUB ga 5\nHALT")
        assert cpu.get_register("ga") == 0
        assert cpu.get_flags()["zf"] is True

    def test_label_jump(self):
        cpu = RizeCPU()
        cpu.load_program("MOV ga 0\n.loop\nADD ga 1\nJMP .loop")
        for _ in range(3):
            cpu.step()
        assert cpu.get_pc() == 2
        assert cpu.get_register("ga") == 1

    def test_divide_by_zero_halts(self):
        cpu = run("MOV ga 7\nDIV ga 0\nMOV ga 1\nHALT")
        assert cpu.is_halted()
        assert cpu.get_register("ga") == 7
        assert cpu.last_error.kind is RizeErrorKind.EXECUTE
        assert cpu.get_cycle_count() == 1

    def test_wdm_writes_pixel(self):
        display = RecordingDisplay()
        cpu = RizeCPU(display=display)
        cpu.load_program("MOV ga 258\nMOV gb 772\nMOV gc 1286\nWDM ga gb gc\nHALT")
        cpu.run()
        assert display.calls == [(5, 6, [1, 2, 3, 4])]


class TestArithmetic:

    def test_explicit_destination(self):
        cpu = run("MOV ga 5\nMOV gb 7\nADD ga gb gc\nHALT")
        assert cpu.get_register("gc") == 12
        assert cpu.get_register("ga") == 5

    def test_immediate_source_with_destination(self):
        cpu = run("MUL 6 7 gd\nHALT")
        assert cpu.get_register("gd") == 42

    def test_carry_and_zero(self):
        cpu = run("MOV ga 255\nADD ga 1\nHALT", word_width=8)
        assert cpu.get_register("ga") == 0
        flags = cpu.get_flags()
        assert flags["zf"] is True
        assert flags["cf"] is True
        assert flags["of"] is False

    def test_signed_overflow(self):
        cpu = run("MOV ga 127\nADD ga 1\nHALT", word_width=8)
        flags = cpu.get_flags()
        assert flags["of"] is True
        assert flags["nf"] is True

    def test_borrow(self):
        cpu = run("MOV ga 1\nSUB ga 2\nHALT")
        assert cpu.get_register("ga") == 0xFFFF
        assert cpu.get_flags()["cf"] is True
        assert cpu.get_flags()["nf"] is True

    def test_divide(self):
        cpu = run("MOV ga 17\nDIV ga 5\nHALT")
        assert cpu.get_register("ga") == 3

    def test_memory_operand(self):
        cpu = run("MOV 0x10 40\nMOV ga 2\nADD ga 0x10\nHALT")
        assert cpu.get_register("ga") == 42

    def test_section_arithmetic(self):
        cpu = run("MOV ga 4607\nADD gal 1\nHALT")
        assert cpu.get_register("ga") == 0x1100
        assert cpu.get_register("gal") == 0
        assert cpu.get_flags()["cf"] is True

    def test_immediate_truncated(self):
        cpu = run("MOV ga 300\nHALT", word_width=8)
        assert cpu.get_register("ga") == 44

    def test_flags_follow_narrow_destination(self):
        """Flags describe the value stored in a narrower section view."""
        cpu = run("MOV ga 255\nADD ga 1 gbl\nHALT")
        assert cpu.get_register("gbl") == 0
        flags = cpu.get_flags()
        assert flags["zf"] is True
        assert flags["cf"] is True

    def test_narrow_destination_drives_conditional_jump(self):
        cpu = run("MOV ga 255\nADD ga 1 gbl\nJIZ .zero\nMOV gc 1\nHALT\n.zero\nMOV gc 2\nHALT")
        assert cpu.get_register("gc") == 2

    def test_wider_destination_has_no_carry(self):
        cpu = run("MOV gal 255\nADD gal 1 gb\nHALT")
        assert cpu.get_register("gb") == 256
        assert cpu.get_flags()["cf"] is False

    def test_mul_by_zero_sets_zero_flag(self):
        cpu = run("MOV ga 9\nMUL ga 0\nHALT")
        assert cpu.get_register("ga") == 0
        assert cpu.get_flags()["zf"] is True
        assert cpu.get_flags()["of"] is False

    def test_mul_signed_overflow(self):
        cpu = run("MOV ga 64\nMUL ga 2\nHALT", word_width=8)
        assert cpu.get_register("ga") == 128
        flags = cpu.get_flags()
        assert flags["of"] is True
        assert flags["nf"] is True
        assert flags["cf"] is False

    def test_div_flags(self):
        cpu = run("MOV ga 3\nDIV ga 5\nHALT")
        flags = cpu.get_flags()
        assert flags["zf"] is True
        assert flags["cf"] is False
        assert flags["of"] is False

    def test_div_clears_previous_carry(self):
        cpu = run("MOV ga 65535\nADD ga 1\nMOV ga 10\nDIV ga 2\nHALT")
        assert cpu.get_register("ga") == 5
        assert cpu.get_flags()["cf"] is False
        assert cpu.get_flags()["zf"] is False

    def test_non_register_destination(self):
        cpu = run("ADD ga 1 5\nHALT")
        assert cpu.last_error.kind is RizeErrorKind.EXECUTE

    def test_non_register_target(self):
        cpu = run("ADD 1 2\nHALT")
        assert cpu.last_error.kind is RizeErrorKind.EXECUTE


class TestBitwise:

    def test_and_or_xor(self):
        cpu = run("MOV ga 12\nAND ga 10 gb\nOR ga 10 gc\nXOR ga 10 gd\nHALT")
        assert cpu.get_register("gb") == 8
        assert cpu.get_register("gc") == 14
        assert cpu.get_register("gd") == 6

    def test_bitwise_clears_carry(self):
        cpu = run("MOV ga 65535\nADD ga 1\nOR ga 1\nHALT")
        assert cpu.get_flags()["cf"] is False

    def test_not(self):
        cpu = run("NOT ga\nHALT")
        assert cpu.get_register("ga") == 0xFFFF
        assert cpu.get_flags()["nf"] is True

    def test_not_with_destination(self):
        cpu = run("MOV ga 255\nNOT ga gb\nHALT")
        assert cpu.get_register("gb") == 0xFF00
        assert cpu.get_register("ga") == 255

    def test_shift_default_amount(self):
        cpu = run("MOV ga 8\nSHR ga\nHALT")
        assert cpu.get_register("ga") == 4

    def test_shift_by_register_into_destination(self):
        cpu = run("MOV ga 3\nMOV gb 2\nSHL ga gb gc\nHALT")
        assert cpu.get_register("gc") == 12
        assert cpu.get_register("ga") == 3

    def test_shift_to_zero_sets_zero_flag(self):
        cpu = run("MOV ga 1\nSHR ga 1\nHALT")
        assert cpu.get_flags()["zf"] is True


class TestDataMovement:

    def test_mov_register(self):
        cpu = run("MOV ga 9\nMOV gb ga\nHALT")
        assert cpu.get_register("gb") == 9

    def test_mov_to_memory(self):
        cpu = run("MOV 0x20 77\nHALT")
        assert cpu.get_memory(0x20) == 77

    def test_mov_to_immediate_fails(self):
        cpu = run("MOV 5 ga\nHALT")
        assert cpu.last_error.kind is RizeErrorKind.EXECUTE

    def test_store_and_load(self):
        cpu = run("MOV ga 99\nST 12 ga\nLD gb 12\nHALT")
        assert cpu.get_memory(12) == 99
        assert cpu.get_register("gb") == 99

    def test_store_and_load_through_mar_mdr(self):
        cpu = run("MOV mar 5\nMOV mdr 1234\nST\nMOV mdr 0\nLD\nHALT")
        assert cpu.get_memory(5) == 1234
        assert cpu.get_register("mdr") == 1234

    def test_store_out_of_range(self):
        cpu = run("ST 5000 1\nHALT")
        assert cpu.last_error.kind is RizeErrorKind.MEMORY_WRITE

    def test_swap(self):
        cpu = run("MOV ga 1\nMOV gb 2\nSWP ga gb\nHALT")
        assert cpu.get_register("ga") == 2
        assert cpu.get_register("gb") == 1

    def test_flag_registers_are_writable(self):
        cpu = run("MOV zf 1\nJIZ .set\nHALT\n.set\nMOV ga 1\nHALT")
        assert cpu.get_register("ga") == 1


class TestControlFlow:

    def test_jump_if_negative(self):
        cpu = run("MOV ga 0\nSUB ga 1\nJIN .neg\nMOV gb 1\nHALT\n.neg\nMOV gb 2\nHALT")
        assert cpu.get_register("gb") == 2

    def test_conditional_not_taken(self):
        cpu = run("MOV ga 1\nSUB ga 0\nJIZ .zero\nMOV gb 1\nHALT\n.zero\nMOV gb 2\nHALT")
        assert cpu.get_register("gb") == 1

    def test_jump_to_line_number(self):
        cpu = run("JMP 2\nMOV ga 1\nMOV gb 1\nHALT")
        assert cpu.get_register("ga") == 0
        assert cpu.get_register("gb") == 1

    def test_jump_beyond_program_counter(self):
        """A line the program counter cannot hold halts instead of wrapping."""
        cpu = run("JMP 65537\nMOV ga 1\nHALT")
        assert cpu.last_error.kind is RizeErrorKind.EXECUTE
        assert cpu.get_register("ga") == 0
        assert cpu.get_pc() == 1

    def test_conditional_jump_beyond_program_counter(self):
        cpu = run("MOV zf 1\nJIZ 300\nHALT", word_width=8)
        assert cpu.last_error.kind is RizeErrorKind.EXECUTE

    def test_jump_to_last_representable_line(self):
        cpu = run("JMP 255\nMOV ga 1\nHALT", word_width=8)
        assert cpu.last_error is None
        assert cpu.get_register("ga") == 0

    def test_missing_label(self):
        cpu = run("JMP .nowhere\nHALT")
        assert cpu.last_error.kind is RizeErrorKind.EXECUTE
        assert "nowhere" in cpu.last_error.message

    def test_labels_case_insensitive(self):
        cpu = run("JMP .END\nMOV ga 1\n.end\nHALT")
        assert cpu.get_register("ga") == 0

    def test_nop(self):
        cpu = run("NOP\nNOP\nHALT")
        assert cpu.get_cycle_count() == 3
        assert cpu.last_error is None

    def test_unknown_opcode(self):
        cpu = run("FROB ga\nHALT")
        assert cpu.last_error.kind is RizeErrorKind.EXECUTE
        assert "FROB" in cpu.last_error.message
