"""Tests for the register file and section views."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from rize_cpu.errors import RegisterReadError
from rize_cpu.registers import (
    FLAGS,
    RegisterKind,
    create_register_file,
    gp_register_names,
)
from rize_cpu.word import Word


@pytest.fixture
def registers():
    return create_register_file(word_width=16, gp_registers=4)


class TestRegisterSetup:
    """Test register file population."""

    def test_register_names(self, registers):
        assert sorted(registers.names()) == sorted(
            ["pc", "mar", "mdr", "zf", "nf", "cf", "of", "ga", "gb", "gc", "gd"]
        )

    def test_gp_names(self):
        assert gp_register_names(3) == ["ga", "gb", "gc"]

    def test_flags_are_one_bit(self, registers):
        for name in FLAGS:
            view = registers.require(name)
            assert view.width == 1
            assert view.kind is RegisterKind.FLAG

    def test_registers_start_at_zero(self, registers):
        assert all(value == 0 for value in registers.snapshot().values())

    def test_general_purpose(self, registers):
        assert registers.general_purpose() == ["ga", "gb", "gc", "gd"]


class TestRegisterLookup:
    """Test case-insensitive lookup and errors."""

    def test_case_insensitive(self, registers):
        registers.require("GA").write(7)
        assert registers.read("ga").value == 7
        assert "PC" in registers

    def test_unknown_register(self, registers):
        assert registers.get("gz") is None
        assert "gz" not in registers
        with pytest.raises(RegisterReadError):
            registers.require("gz")

    def test_write_coerces_to_width(self, registers):
        registers.require("zf").write(Word(2, 16))
        assert registers.read("zf") == Word(0, 1)
        registers.require("ga").write(70000)
        assert registers.read("ga").value == 70000 & 0xFFFF

    def test_write_returns_previous(self, registers):
        view = registers.require("gb")
        view.write(3)
        assert view.write(4).value == 3


class TestSectionViews:
    """gax / gal / gah address the same bits as ga."""

    def test_halves(self, registers):
        registers.require("ga").write(0x1234)
        assert registers.read("gah").value == 0x12
        assert registers.read("gal").value == 0x34
        assert registers.read("gax").value == 0x1234
        assert registers.require("gal").width == 8

    def test_write_low_half(self, registers):
        registers.require("ga").write(0x1234)
        registers.require("gal").write(0xFF)
        assert registers.read("ga").value == 0x12FF

    def test_write_high_half(self, registers):
        registers.require("gah").write(0xAB)
        assert registers.read("ga").value == 0xAB00

    def test_section_operation_stays_in_section(self, registers):
        registers.require("ga").write(0x12FF)
        outcome = registers.require("gal").add(1)
        assert outcome.result.value == 0
        assert outcome.carry is True
        assert registers.read("ga").value == 0x1200

    def test_no_halves_on_eight_bit_machine(self):
        registers = create_register_file(word_width=8, gp_registers=2)
        assert registers.get("gal") is None
        assert registers.get("gah") is None
        assert registers.get("gax") is not None

    def test_sections_only_for_general_purpose(self, registers):
        assert registers.get("pcl") is None
        assert registers.get("gaq") is None
