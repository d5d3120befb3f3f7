"""Typed primitives for the Palette Cut analysis pipeline."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Color:
    """An RGB triple with integer channels in [0, 255]."""

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        for name in ("r", "g", "b"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"Channel {name} must be an int, got {value!r}")
            if not 0 <= value <= 255:
                raise ValueError(f"Channel {name} out of range: {value}")

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


ColorSequence = List[Color]

BLACK = Color(0, 0, 0)


@dataclass
class Cluster:
    """Online aggregate of similar colors: running centroid plus member count."""

    r: float
    g: float
    b: float
    count: int = 1

    @classmethod
    def seed(cls, color: Color) -> "Cluster":
        return cls(r=float(color.r), g=float(color.g), b=float(color.b), count=1)

    def add(self, color: Color) -> None:
        self.count += 1
        self.r += (color.r - self.r) / self.count
        self.g += (color.g - self.g) / self.count
        self.b += (color.b - self.b) / self.count


@dataclass(frozen=True)
class AnalysisResult:
    """Summary statistics derived from a completed color sequence."""

    average: Color
    dominant: Color
    least: Color


@dataclass
class SamplingJob:
    """Per-invocation state owned by the sampler for the duration of one run."""

    source_size: int
    total: int
    backend: Optional[str] = None
    duration: Optional[float] = None
    progress: int = 0
    colors: ColorSequence = field(default_factory=list)
    failed_frames: int = 0


class CancellationToken:
    """Cooperative cancellation flag checked by the sampler before each frame."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


__all__ = [
    "Color",
    "ColorSequence",
    "BLACK",
    "Cluster",
    "AnalysisResult",
    "SamplingJob",
    "CancellationToken",
]
