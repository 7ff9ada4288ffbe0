"""Tests for Memory and DisplayMemory."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from rize_cpu.display import DisplayMemory
from rize_cpu.errors import DisplayError, MemoryReadError, MemoryWriteError
from rize_cpu.memory import Memory
from rize_cpu.word import Word


@pytest.fixture
def memory():
    return Memory(capacity=16, width=16)


class TestMemory:
    """Bounds-checked sparse memory."""

    def test_unwritten_reads_zero(self, memory):
        assert memory.read(5) == Word(0, 16)

    def test_write_then_read(self, memory):
        previous = memory.write(3, Word(42, 16))
        assert previous.value == 0
        assert memory.read(3).value == 42
        assert memory.write(3, Word(7, 16)).value == 42

    def test_word_address(self, memory):
        memory.write(Word(2, 16), Word(9, 16))
        assert memory.read(Word(2, 8)).value == 9

    @pytest.mark.parametrize("address", [16, 100, -1])
    def test_out_of_range(self, memory, address):
        with pytest.raises(MemoryReadError):
            memory.read(address)
        with pytest.raises(MemoryWriteError):
            memory.write(address, Word(1, 16))

    def test_snapshot_and_clear(self, memory):
        memory.write(4, Word(1, 16))
        memory.write(1, Word(2, 16))
        assert memory.snapshot() == {1: 2, 4: 1}
        memory.clear()
        assert memory.snapshot() == {}
        assert len(memory) == 16


class TestDisplayMemory:
    """RGBA pixel store."""

    @pytest.fixture
    def display(self):
        return DisplayMemory(width=8, height=4)

    def test_initial_gradient(self, display):
        assert display.get_pixel(0, 0) == [100, 100, 100, 255]
        assert display.get_pixel(7, 3) == [107, 100, 103, 255]

    def test_set_pixel(self, display):
        display.set_pixel(2, 1, [1, 2, 3, 4])
        assert display.get_pixel(2, 1) == [1, 2, 3, 4]

    def test_out_of_bounds(self, display):
        with pytest.raises(DisplayError):
            display.set_pixel(8, 0, [0, 0, 0, 0])
        with pytest.raises(DisplayError):
            display.set_pixel(0, 4, [0, 0, 0, 0])

    def test_bad_color(self, display):
        with pytest.raises(DisplayError):
            display.set_pixel(0, 0, [1, 2, 3])

    def test_reset(self, display):
        display.set_pixel(0, 0, [0, 0, 0, 0])
        display.reset()
        assert display.get_pixel(0, 0) == [100, 100, 100, 255]

    def test_to_bytes(self, display):
        data = display.to_bytes()
        assert len(data) == 8 * 4 * 4
        assert list(data[:4]) == [100, 100, 100, 255]
