"""Render a color sequence as a barcode-style ribbon image."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence

import cv2
import numpy as np

from .types import Color


def render_ribbon(colors: Sequence[Color], height: int = 300, stripe_width: int = 4) -> np.ndarray:
    """Return an RGB image with one vertical stripe per color, left to right in order."""
    if not colors:
        raise ValueError("Cannot render an empty color sequence")
    if height < 1 or stripe_width < 1:
        raise ValueError("Ribbon height and stripe width must be positive")

    row = np.array([color.as_tuple() for color in colors], dtype=np.uint8)
    row = np.repeat(row, stripe_width, axis=0)
    return np.repeat(row[np.newaxis, :, :], height, axis=0)


def encode_png(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", cv2.cvtColor(image, cv2.COLOR_RGB2BGR))
    if not ok:
        raise ValueError("PNG encoding failed")
    return buffer.tobytes()


def write_ribbon(path: Path, colors: Sequence[Color], height: int = 300, stripe_width: int = 4) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_png(render_ribbon(colors, height=height, stripe_width=stripe_width)))
    return path


__all__ = ["render_ribbon", "encode_png", "write_ribbon"]
