from __future__ import annotations

import numpy as np
import pytest

from src.pipeline.averager import FrameAverager
from src.pipeline.errors import FrameCaptureFailure
from src.pipeline.types import Color


def test_uniform_frame_averages_to_its_color() -> None:
    frame = np.full((32, 32, 3), (10, 20, 30), dtype=np.uint8)
    assert FrameAverager().average(frame) == Color(10, 20, 30)


def test_alpha_channel_is_ignored() -> None:
    frame = np.zeros((8, 8, 4), dtype=np.uint8)
    frame[:, :, 0] = 200
    frame[:, :, 3] = 7
    assert FrameAverager().average(frame) == Color(200, 0, 0)


def test_channel_means_round_half_up() -> None:
    frame = np.array([[[0, 0, 0], [1, 3, 255]]], dtype=np.uint8)
    assert FrameAverager().average(frame) == Color(1, 2, 128)


def test_mixed_frame_mean() -> None:
    frame = np.zeros((2, 2, 3), dtype=np.uint8)
    frame[0, :, :] = (255, 255, 255)
    assert FrameAverager().average(frame) == Color(128, 128, 128)


@pytest.mark.parametrize(
    "frame",
    [
        np.zeros((0, 0, 3), dtype=np.uint8),
        np.zeros((4, 4), dtype=np.uint8),
        np.zeros((4, 4, 2), dtype=np.uint8),
        None,
    ],
)
def test_unusable_frames_raise_capture_failure(frame) -> None:
    with pytest.raises(FrameCaptureFailure):
        FrameAverager().average(frame)
