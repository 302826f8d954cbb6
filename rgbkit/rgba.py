"""RGBA colors and their relation to CGB RGB555 colors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


def _five_to_eight(value: int) -> int:
    value &= 0b11111
    return (value << 3 | value >> 2) & 0xFF


@dataclass(frozen=True)
class Rgba:
    """An 8-bit-per-channel color with alpha."""

    red: int
    green: int
    blue: int
    alpha: int

    # CGB colors are RGB555; bit 15 marks a transparent color instead.
    TRANSPARENT: ClassVar[int] = 0x8000
    TRANSPARENCY_THRESHOLD: ClassVar[int] = 0x10
    OPACITY_THRESHOLD: ClassVar[int] = 0xF0

    def __post_init__(self) -> None:
        for name in ("red", "green", "blue", "alpha"):
            channel = getattr(self, name)
            if not 0 <= channel <= 0xFF:
                raise ValueError(f"{name} channel out of range: {channel}")

    @classmethod
    def from_packed(cls, rgba: int) -> Rgba:
        """Build a color from a packed 0xRRGGBBAA value."""
        return cls(
            (rgba >> 24) & 0xFF,
            (rgba >> 16) & 0xFF,
            (rgba >> 8) & 0xFF,
            rgba & 0xFF,
        )

    @classmethod
    def from_cgb_color(cls, cgb_color: int) -> Rgba:
        """Expand a CGB RGB555 color (bit 15 meaning transparent)."""
        return cls(
            _five_to_eight(cgb_color),
            _five_to_eight(cgb_color >> 5),
            _five_to_eight(cgb_color >> 10),
            0x00 if cgb_color & 0x8000 else 0xFF,
        )

    def to_css(self) -> int:
        """Return the packed 0xRRGGBBAA value."""
        return self.red << 24 | self.green << 16 | self.blue << 8 | self.alpha

    def is_transparent(self) -> bool:
        return self.alpha < self.TRANSPARENCY_THRESHOLD

    def is_opaque(self) -> bool:
        return self.alpha >= self.OPACITY_THRESHOLD

    def is_gray(self) -> bool:
        return self.red == self.green == self.blue