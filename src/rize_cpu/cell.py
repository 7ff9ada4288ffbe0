"""ByteCell: the lock-guarded holder of one Word.

A ByteCell is the unit of state behind every register and memory location.
Reads are atomic; every mutation is an atomic replace performed while the
cell's lock is held, so read-only observers may run alongside a pipeline
stage without seeing a half-written value.

Flagged operations return a ByteOpResult:
    previous: value before the operation
    result:   value after the operation
    carry:    unsigned carry (add) or borrow (sub); False otherwise
    overflow: two's-complement overflow (add/sub/mul); False otherwise
"""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, TypeVar

from .errors import ExecuteError
from .word import Word, WordLike


T = TypeVar("T")


@dataclass(frozen=True)
class ByteOpResult:
    """Outcome of a flagged cell operation."""
    previous: Word
    result: Word
    carry: bool = False
    overflow: bool = False


def _plain(fn: Callable[[Word, WordLike], Word]) -> Callable[[Word, WordLike], Tuple[Word, bool, bool]]:
    return lambda a, b: (fn(a, b), False, False)


def _divide(a: Word, b: WordLike) -> Tuple[Word, bool, bool]:
    try:
        return a // b, False, False
    except ZeroDivisionError:
        raise ExecuteError(f"Division by zero ({a.value} / 0)") from None


OPERATIONS: Dict[str, Callable[[Word, WordLike], Tuple[Word, bool, bool]]] = {
    "add": Word.overflowing_add,
    "sub": Word.overflowing_sub,
    "mul": Word.overflowing_mul,
    "div": _divide,
    "bitand": _plain(lambda a, b: a & b),
    "bitor": _plain(lambda a, b: a | b),
    "bitxor": _plain(lambda a, b: a ^ b),
    "bitnot": _plain(lambda a, _: ~a),
    "shl": _plain(lambda a, b: a << b),
    "shr": _plain(lambda a, b: a >> b),
}


def compute(operation: str, current: Word, operand: Optional[WordLike] = None) -> ByteOpResult:
    """Apply a named operation to a value without touching any cell.

    Args:
        operation: Key in OPERATIONS (e.g. "add", "shl")
        current: Left operand; its width is kept by the result
        operand: Right operand (ignored by "bitnot")

    Returns:
        ByteOpResult describing the operation

    Raises:
        ExecuteError: On division by the zero word
    """
    try:
        fn = OPERATIONS[operation]
    except KeyError:
        raise ValueError(f"Unknown cell operation: {operation}") from None
    result, carry, overflow = fn(current, 0 if operand is None else operand)
    return ByteOpResult(previous=current, result=result, carry=carry, overflow=overflow)


class FlaggedOperations:
    """Arithmetic/bitwise surface shared by cells and register views.

    Subclasses implement _apply(operation, operand) atomically.
    """

    def _apply(self, operation: str, operand: Optional[WordLike]) -> ByteOpResult:
        raise NotImplementedError

    def apply(self, operation: str, operand: Optional[WordLike] = None) -> ByteOpResult:
        """Apply any operation named in OPERATIONS."""
        return self._apply(operation, operand)

    def add(self, data: WordLike) -> ByteOpResult:
        return self._apply("add", data)

    def sub(self, data: WordLike) -> ByteOpResult:
        return self._apply("sub", data)

    def mul(self, data: WordLike) -> ByteOpResult:
        return self._apply("mul", data)

    def div(self, data: WordLike) -> ByteOpResult:
        return self._apply("div", data)

    def bitand(self, data: WordLike) -> ByteOpResult:
        return self._apply("bitand", data)

    def bitor(self, data: WordLike) -> ByteOpResult:
        return self._apply("bitor", data)

    def bitxor(self, data: WordLike) -> ByteOpResult:
        return self._apply("bitxor", data)

    def bitnot(self) -> ByteOpResult:
        return self._apply("bitnot", None)

    def shl(self, data: WordLike) -> ByteOpResult:
        return self._apply("shl", data)

    def shr(self, data: WordLike) -> ByteOpResult:
        return self._apply("shr", data)


class ByteCell(FlaggedOperations):
    """Mutable, exclusively guarded holder of exactly one Word."""

    def __init__(self, value: Optional[Word] = None):
        self._value = value if value is not None else Word()
        self._lock = threading.Lock()

    def read(self) -> Word:
        with self._lock:
            return self._value

    def write(self, value: Word) -> Word:
        """Replace the stored value and return the previous one."""
        with self._lock:
            previous = self._value
            self._value = value
            return previous

    def update(self, transform: Callable[[Word], Tuple[Word, T]]) -> T:
        """Atomically read-modify-write the cell.

        The transform receives the current value and returns (new value,
        outcome). If it raises, the cell is left unchanged.
        """
        with self._lock:
            new_value, outcome = transform(self._value)
            self._value = new_value
            return outcome

    def _apply(self, operation: str, operand: Optional[WordLike]) -> ByteOpResult:
        def transform(current: Word) -> Tuple[Word, ByteOpResult]:
            outcome = compute(operation, current, operand)
            return outcome.result, outcome

        return self.update(transform)

    def __repr__(self) -> str:
        return f"ByteCell({self.read()!r})"
