"""Tests for ByteCell and flagged cell operations."""

import sys
import threading
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from rize_cpu.cell import ByteCell, compute
from rize_cpu.errors import ExecuteError, RizeErrorKind
from rize_cpu.word import Word


@pytest.fixture
def cell():
    return ByteCell(Word(10, 16))


class TestByteCell:
    """Test read/write behavior."""

    def test_default_value(self):
        assert ByteCell().read() == Word(0, 16)

    def test_write_returns_previous(self, cell):
        previous = cell.write(Word(99, 16))
        assert previous == Word(10, 16)
        assert cell.read() == Word(99, 16)

    def test_update_leaves_cell_unchanged_on_error(self, cell):
        def explode(current):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            cell.update(explode)
        assert cell.read() == Word(10, 16)


class TestFlaggedOperations:
    """Operations return a ByteOpResult and store the result."""

    def test_add(self, cell):
        outcome = cell.add(5)
        assert outcome.previous.value == 10
        assert outcome.result.value == 15
        assert outcome.carry is False
        assert cell.read().value == 15

    def test_add_carry(self):
        cell = ByteCell(Word(0xFFFF, 16))
        outcome = cell.add(1)
        assert outcome.result.value == 0
        assert outcome.carry is True

    def test_sub_borrow(self, cell):
        outcome = cell.sub(11)
        assert outcome.result.value == 0xFFFF
        assert outcome.carry is True

    def test_bitwise_clears_carry_and_overflow(self, cell):
        for outcome in (cell.bitand(6), cell.bitor(1), cell.bitxor(3), cell.bitnot()):
            assert outcome.carry is False
            assert outcome.overflow is False

    def test_shift(self, cell):
        assert cell.shl(2).result.value == 40
        assert cell.shr(3).result.value == 5

    def test_apply_by_name(self, cell):
        assert cell.apply("mul", 3).result.value == 30

    def test_divide_by_zero(self, cell):
        """Division by zero raises and leaves the cell untouched."""
        with pytest.raises(ExecuteError) as exc_info:
            cell.div(0)
        assert exc_info.value.kind is RizeErrorKind.EXECUTE
        assert cell.read().value == 10

    def test_compute_does_not_store(self):
        outcome = compute("add", Word(1, 8), 2)
        assert outcome.result == Word(3, 8)

    def test_unknown_operation(self):
        with pytest.raises(ValueError):
            compute("rotate", Word(1, 8), 1)


class TestConcurrency:

    def test_concurrent_adds_are_atomic(self):
        cell = ByteCell(Word(0, 32))

        def worker():
            for _ in range(1000):
                cell.add(1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cell.read().value == 8000
