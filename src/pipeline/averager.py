"""Per-frame color reduction."""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .colors import clamp_channel
from .errors import FrameCaptureFailure
from .types import Color


@dataclass
class AveragerConfig:
    channels: int = 3  # leading channels averaged; alpha and extras are ignored


class FrameAverager:
    """Reduces a small RGB raster to the mean color of its pixels."""

    def __init__(self, config: AveragerConfig | None = None) -> None:
        self._config = config or AveragerConfig()

    def average(self, frame: np.ndarray) -> Color:
        if frame is None:
            raise FrameCaptureFailure("No pixel data for frame")
        if frame.ndim != 3 or frame.shape[2] < self._config.channels:
            raise FrameCaptureFailure(f"Expected HxWx{self._config.channels}+ raster, got shape {frame.shape}")
        if frame.shape[0] == 0 or frame.shape[1] == 0:
            raise FrameCaptureFailure("Empty raster")

        rgb = frame[:, :, : self._config.channels].astype(np.float64)
        means = rgb.reshape(-1, self._config.channels).mean(axis=0)
        if not np.all(np.isfinite(means)):
            raise FrameCaptureFailure("Raster contains non-finite values")
        return Color(*(clamp_channel(float(value)) for value in means[:3]))


__all__ = ["AveragerConfig", "FrameAverager"]
