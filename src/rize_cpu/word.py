"""Word: width-tagged unsigned values for Rize-1 registers and memory.

A Word is either a 1-bit flag or an 8/16/32/64/128-bit unsigned integer.
All arithmetic keeps the width of the left operand and wraps silently
(two's-complement wraparound), so a result never widens on its own.

Conversions:
    - int(word) always succeeds and yields the native unsigned value
    - Word.from_int(value, width) truncates to the target width
"""

from dataclasses import dataclass
from typing import Tuple, Union


FLAG_WIDTH = 1
WIDTHS = (1, 8, 16, 32, 64, 128)

WordLike = Union["Word", int]


def _native(other: WordLike) -> int:
    """Get the native unsigned value of a Word or plain int."""
    if isinstance(other, Word):
        return other.value
    return int(other)


@dataclass(frozen=True)
class Word:
    """Immutable width-tagged unsigned value.

    Attributes:
        value: Unsigned value, 0 <= value < 2**width
        width: Bit width (1, 8, 16, 32, 64 or 128)
    """
    value: int = 0
    width: int = 16

    def __post_init__(self):
        if self.width not in WIDTHS:
            raise ValueError(f"Invalid word width {self.width}; choose one of {WIDTHS}")
        if not 0 <= self.value <= self.mask:
            raise ValueError(f"Value {self.value} does not fit in {self.width} bits")

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_int(cls, value: int, width: int) -> "Word":
        """Create a Word from a native int, truncating to the width."""
        return cls((int(value)) & ((1 << width) - 1), width)

    @classmethod
    def flag(cls, value: bool) -> "Word":
        return cls(int(bool(value)), FLAG_WIDTH)

    @classmethod
    def zero(cls, width: int) -> "Word":
        return cls(0, width)

    def resize(self, width: int) -> "Word":
        """Re-tag with another width, truncating or zero-extending."""
        if width == self.width:
            return self
        return Word.from_int(self.value, width)

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def mask(self) -> int:
        return (1 << self.width) - 1

    @property
    def msb(self) -> bool:
        """Most significant bit, read as the sign of a two's-complement value."""
        return bool((self.value >> (self.width - 1)) & 1)

    @property
    def is_zero(self) -> bool:
        return self.value == 0

    @property
    def is_set(self) -> bool:
        """True if the word holds a non-zero ("set") value."""
        return self.value != 0

    @property
    def is_flag(self) -> bool:
        return self.width == FLAG_WIDTH

    def as_signed(self) -> int:
        """Interpret the bits as a two's-complement signed integer."""
        if self.msb and not self.is_flag:
            return self.value - (1 << self.width)
        return self.value

    def as_hex(self) -> str:
        digits = max(1, self.width // 4)
        return f"0x{self.value:0{digits}x}"

    def as_bin(self) -> str:
        return f"{self.value:0{self.width}b}"

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value

    def __str__(self) -> str:
        if self.is_flag:
            return "True" if self.value else "False"
        return str(self.value)

    # =========================================================================
    # Wrapping operators (result keeps self.width)
    # =========================================================================

    def _wrap(self, value: int) -> "Word":
        return Word.from_int(value, self.width)

    def __add__(self, other: WordLike) -> "Word":
        return self._wrap(self.value + _native(other))

    def __sub__(self, other: WordLike) -> "Word":
        return self._wrap(self.value - _native(other))

    def __mul__(self, other: WordLike) -> "Word":
        return self._wrap(self.value * _native(other))

    def __floordiv__(self, other: WordLike) -> "Word":
        divisor = _native(other)
        if divisor == 0:
            raise ZeroDivisionError("division by the zero word")
        return self._wrap(self.value // divisor)

    def __and__(self, other: WordLike) -> "Word":
        return self._wrap(self.value & _native(other))

    def __or__(self, other: WordLike) -> "Word":
        return self._wrap(self.value | _native(other))

    def __xor__(self, other: WordLike) -> "Word":
        return self._wrap(self.value ^ _native(other))

    def __invert__(self) -> "Word":
        return self._wrap(~self.value)

    def shift_count(self, amount: WordLike) -> int:
        """Host shift count for this width: the amount masked to the width."""
        return _native(amount) & (self.width - 1)

    def __lshift__(self, amount: WordLike) -> "Word":
        return self._wrap(self.value << self.shift_count(amount))

    def __rshift__(self, amount: WordLike) -> "Word":
        return self._wrap(self.value >> self.shift_count(amount))

    # =========================================================================
    # Flag-reporting arithmetic
    # =========================================================================

    def overflowing_add(self, other: WordLike) -> Tuple["Word", bool, bool]:
        """Add and report (result, carry, signed overflow)."""
        b = _native(other)
        total = self.value + b
        result = self._wrap(total)
        b_sign = self._wrap(b).msb
        overflow = self.msb == b_sign and result.msb != self.msb
        return result, total > self.mask, overflow

    def overflowing_sub(self, other: WordLike) -> Tuple["Word", bool, bool]:
        """Subtract and report (result, borrow, signed overflow)."""
        b = _native(other)
        result = self._wrap(self.value - b)
        b_sign = self._wrap(b).msb
        overflow = self.msb != b_sign and result.msb != self.msb
        return result, self.value < b, overflow

    def overflowing_mul(self, other: WordLike) -> Tuple["Word", bool, bool]:
        """Multiply and report (result, carry=False, signed overflow)."""
        b = _native(other)
        result = self._wrap(self.value * b)
        if self.is_flag:
            return result, False, False
        product = self.as_signed() * self._wrap(b).as_signed()
        bound = 1 << (self.width - 1)
        overflow = not -bound <= product < bound
        return result, False, overflow
