"""RGB color math and string encodings."""
from __future__ import annotations

import math
import re

from .types import Color

_HEX_PATTERN = re.compile(r"^#?([0-9A-Fa-f]{6})$")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive input."""
    return int(math.floor(value + 0.5))


def clamp_channel(value: float) -> int:
    return max(0, min(255, round_half_up(value)))


def distance(a: Color, b: Color) -> float:
    """Euclidean distance in RGB space; accepts anything with r, g, b (e.g. cluster centroids)."""
    return math.sqrt((a.r - b.r) ** 2 + (a.g - b.g) ** 2 + (a.b - b.b) ** 2)


def to_css(color: Color) -> str:
    return f"rgb({color.r}, {color.g}, {color.b})"


def to_hex(color: Color) -> str:
    return f"#{color.r:02X}{color.g:02X}{color.b:02X}"


def from_hex(value: str) -> Color:
    """Parse ``#RRGGBB`` (leading hash optional, any case) into a Color."""
    match = _HEX_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid hex color: {value!r}")
    digits = match.group(1)
    return Color(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


__all__ = ["round_half_up", "clamp_channel", "distance", "to_css", "to_hex", "from_hex"]
