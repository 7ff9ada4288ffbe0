"""Memory: bounds-checked, address-indexed storage of Words.

Storage is sparse: a cell is created the first time an address is written,
and any address never written reads as the zero Word of the machine width.
Every access outside [0, capacity) is an error.
"""

import logging
import operator
import threading
from typing import Dict

from .cell import ByteCell
from .errors import MemoryReadError, MemoryWriteError
from .word import Word, WordLike


logger = logging.getLogger(__name__)


class Memory:
    """Sparse memory of `capacity` cells, each `width` bits wide.

    Attributes:
        capacity: Number of addressable cells
        width: Bit width of a freshly read (never written) cell
    """

    def __init__(self, capacity: int, width: int = 16):
        self.capacity = capacity
        self.width = width
        self._cells: Dict[int, ByteCell] = {}
        self._lock = threading.Lock()

    def _in_range(self, address: int) -> bool:
        return 0 <= address < self.capacity

    def read(self, address: WordLike) -> Word:
        """Read the Word stored at an address.

        Raises:
            MemoryReadError: If the address is outside the capacity
        """
        addr = operator.index(address)
        if not self._in_range(addr):
            raise MemoryReadError(
                f"Address {addr:#x} out of range (capacity {self.capacity:#x})"
            )
        cell = self._cells.get(addr)
        if cell is None:
            return Word.zero(self.width)
        return cell.read()

    def write(self, address: WordLike, value: Word) -> Word:
        """Store a Word at an address and return the previous value.

        Raises:
            MemoryWriteError: If the address is outside the capacity
        """
        addr = operator.index(address)
        if not self._in_range(addr):
            raise MemoryWriteError(
                f"Address {addr:#x} out of range (capacity {self.capacity:#x})"
            )
        with self._lock:
            cell = self._cells.get(addr)
            if cell is None:
                self._cells[addr] = ByteCell(value)
                return Word.zero(self.width)
        return cell.write(value)

    def snapshot(self) -> Dict[int, int]:
        """Copy of every written cell as {address: int} (for observers)."""
        with self._lock:
            cells = dict(self._cells)
        return {addr: cells[addr].read().value for addr in sorted(cells)}

    def clear(self) -> None:
        with self._lock:
            self._cells.clear()

    def __len__(self) -> int:
        return self.capacity
