from __future__ import annotations

import asyncio
import math
from typing import Iterable, List, Optional

import numpy as np
import pytest

from src.pipeline.backends import BackendSelector, DecodeBackend, DecodeSession
from src.pipeline.errors import Cancelled, DurationUnknown, EndOfStream, FrameCaptureFailure
from src.pipeline.sampler import FrameSampler, SamplerConfig, compute_timestamps
from src.pipeline.types import BLACK, CancellationToken, Color


class FakeSession(DecodeSession):
    backend = "fake"

    def __init__(
        self,
        duration: float,
        fail_at: Iterable[int] = (),
        stop_at: Optional[int] = None,
        error_at: Optional[int] = None,
    ) -> None:
        self.duration = duration
        self.fail_at = set(fail_at)
        self.stop_at = stop_at
        self.error_at = error_at
        self.prepared: Optional[List[float]] = None
        self.captured: List[tuple[int, float]] = []
        self.closed = False

    async def prepare(self, timestamps) -> None:
        self.prepared = list(timestamps)

    async def capture(self, index: int, timestamp: float) -> np.ndarray:
        self.captured.append((index, timestamp))
        if self.stop_at is not None and index >= self.stop_at:
            raise EndOfStream()
        if self.error_at is not None and index == self.error_at:
            raise RuntimeError("decoder crashed")
        if index in self.fail_at:
            raise FrameCaptureFailure("glitch")
        return np.full((4, 4, 3), index % 256, dtype=np.uint8)

    async def close(self) -> None:
        self.closed = True


class FakeSelector:
    def __init__(self, session: FakeSession) -> None:
        self.session = session
        self.opened_with = None

    async def open(self, source: bytes, size):
        self.opened_with = (source, size)
        return self.session


class RaisingBackend(DecodeBackend):
    def __init__(self, error: Exception) -> None:
        self.error = error
        self.calls = 0

    async def open(self, source: bytes, size):
        self.calls += 1
        raise self.error


def _sampler(session: FakeSession, count: int = 240) -> tuple[FrameSampler, FakeSelector]:
    selector = FakeSelector(session)
    sampler = FrameSampler(SamplerConfig(sample_count=count), selector=selector)  # type: ignore[arg-type]
    return sampler, selector


def test_timestamps_for_two_minute_video() -> None:
    timestamps = compute_timestamps(120.0, 240, 0.1)
    assert len(timestamps) == 240
    assert timestamps == pytest.approx([index * 0.5 for index in range(240)])
    assert timestamps[0] == 0.0
    assert timestamps[-1] == pytest.approx(119.5)
    assert all(value <= 119.9 for value in timestamps)


def test_timestamps_clamp_before_end() -> None:
    assert compute_timestamps(1.0, 4, 0.5) == pytest.approx([0.0, 0.25, 0.5, 0.5])


@pytest.mark.parametrize("duration", [None, 0.0, -3.0, math.inf, math.nan])
def test_timestamps_require_finite_positive_duration(duration) -> None:
    with pytest.raises(DurationUnknown):
        compute_timestamps(duration, 240)


def test_sample_produces_ordered_sequence_and_progress() -> None:
    session = FakeSession(duration=120.0)
    sampler, selector = _sampler(session)
    progress: List[int] = []

    colors = asyncio.run(sampler.sample(b"video", progress.append))

    assert selector.opened_with == (b"video", (32, 32))
    assert len(colors) == 240
    assert colors[:3] == [Color(0, 0, 0), Color(1, 1, 1), Color(2, 2, 2)]
    assert colors[239] == Color(239, 239, 239)
    assert [index for index, _ in session.captured] == list(range(240))
    assert session.prepared == pytest.approx(compute_timestamps(120.0, 240, 0.1))

    assert len(progress) == 240
    assert progress == sorted(progress)
    assert progress[-1] == 100
    assert all(value < 100 for value in progress[:-1])
    assert session.closed


def test_failed_frames_become_black_without_shortening() -> None:
    session = FakeSession(duration=10.0, fail_at={3, 7})
    sampler, _ = _sampler(session, count=10)

    job = asyncio.run(sampler.run(b"video"))

    assert len(job.colors) == 10
    assert job.colors[3] == BLACK
    assert job.colors[7] == BLACK
    assert job.colors[4] == Color(4, 4, 4)
    assert job.failed_frames == 2
    assert job.backend == "fake"
    assert job.progress == 100
    assert session.closed


def test_end_of_stream_terminates_early() -> None:
    session = FakeSession(duration=10.0, stop_at=5)
    sampler, _ = _sampler(session, count=10)
    progress: List[int] = []

    colors = asyncio.run(sampler.sample(b"video", progress.append))

    assert len(colors) == 5
    assert progress == sorted(progress)
    assert progress[-1] == 100
    assert progress.count(100) == 1
    assert session.closed


def test_infinite_duration_rejects_before_any_seek() -> None:
    session = FakeSession(duration=math.inf)
    sampler, _ = _sampler(session)

    with pytest.raises(DurationUnknown):
        asyncio.run(sampler.sample(b"video"))

    assert session.captured == []
    assert session.prepared is None
    assert session.closed


def test_native_only_mode_propagates_unknown_duration() -> None:
    native = RaisingBackend(DurationUnknown())
    fallback = RaisingBackend(AssertionError("fallback must not be used"))
    selector = BackendSelector(mode="native", native=native, fallback=fallback)
    sampler = FrameSampler(SamplerConfig(backend="native"), selector=selector)

    with pytest.raises(DurationUnknown):
        asyncio.run(sampler.sample(b"video"))

    assert native.calls == 1
    assert fallback.calls == 0


def test_job_level_error_closes_session() -> None:
    session = FakeSession(duration=10.0, error_at=2)
    sampler, _ = _sampler(session, count=10)

    with pytest.raises(RuntimeError):
        asyncio.run(sampler.sample(b"video"))

    assert session.closed


def test_cancellation_token_aborts_before_next_frame() -> None:
    session = FakeSession(duration=10.0)
    sampler, _ = _sampler(session, count=10)
    token = CancellationToken()

    def on_progress(percent: int) -> None:
        if len(session.captured) == 3:
            token.cancel()

    with pytest.raises(Cancelled):
        asyncio.run(sampler.sample(b"video", on_progress, token))

    assert len(session.captured) == 3
    assert session.closed


def test_async_progress_callback_is_awaited() -> None:
    session = FakeSession(duration=4.0)
    sampler, _ = _sampler(session, count=4)
    seen: List[int] = []

    async def on_progress(percent: int) -> None:
        await asyncio.sleep(0)
        seen.append(percent)

    asyncio.run(sampler.sample(b"video", on_progress))
    assert seen == [25, 50, 75, 100]


def test_sampling_yields_to_the_event_loop_between_frames() -> None:
    session = FakeSession(duration=10.0)
    sampler, _ = _sampler(session, count=20)

    async def scenario() -> int:
        ticks = 0
        done = asyncio.Event()

        async def ticker() -> None:
            nonlocal ticks
            while not done.is_set():
                ticks += 1
                await asyncio.sleep(0)

        task = asyncio.create_task(ticker())
        await sampler.sample(b"video")
        done.set()
        await task
        return ticks

    assert asyncio.run(scenario()) >= 10
