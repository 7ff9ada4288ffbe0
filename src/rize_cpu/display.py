"""Pixel store consumed by the WDM instruction.

DisplayMemory is a plain RGBA framebuffer. Renderers read it back through
get_pixel() or to_bytes(); no instruction ever reads it.
"""

from typing import List, Protocol, Sequence

from .errors import DisplayError


Color = Sequence[int]


class PixelStore(Protocol):
    """Anything WDM can draw into."""

    def set_pixel(self, x: int, y: int, color: Color) -> None:
        ...


class DisplayMemory:
    """Row-major RGBA framebuffer of width x height pixels."""

    def __init__(self, width: int = 256, height: int = 256):
        self.width = width
        self.height = height
        self._pixels = bytearray(width * height * 4)
        self.reset()

    def reset(self) -> None:
        """Restore the power-on gradient."""
        for y in range(self.height):
            for x in range(self.width):
                offset = self._offset(x, y)
                self._pixels[offset:offset + 4] = bytes(
                    ((x + 100) & 0xFF, 100, (y + 100) & 0xFF, 255)
                )

    def _offset(self, x: int, y: int) -> int:
        return (y * self.width + x) * 4

    def _check(self, x: int, y: int) -> None:
        if not 0 <= x < self.width:
            raise DisplayError(f"X coordinate {x} out of bounds (width is {self.width})")
        if not 0 <= y < self.height:
            raise DisplayError(f"Y coordinate {y} out of bounds (height is {self.height})")

    def set_pixel(self, x: int, y: int, color: Color) -> None:
        """Set one pixel to an (r, g, b, a) color.

        Raises:
            DisplayError: If (x, y) lies outside the display
        """
        self._check(x, y)
        if len(color) != 4:
            raise DisplayError(f"Color must have 4 channels, got {len(color)}")
        offset = self._offset(x, y)
        self._pixels[offset:offset + 4] = bytes(c & 0xFF for c in color)

    def get_pixel(self, x: int, y: int) -> List[int]:
        self._check(x, y)
        offset = self._offset(x, y)
        return list(self._pixels[offset:offset + 4])

    def to_bytes(self) -> bytes:
        """Raw row-major RGBA bytes, suitable for building an image."""
        return bytes(self._pixels)
