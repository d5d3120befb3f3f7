"""Temporal frame sampling for Palette Cut."""
from __future__ import annotations

import asyncio
import inspect
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Union

from .averager import FrameAverager
from .backends import BackendSelector
from .colors import round_half_up
from .errors import Cancelled, DurationUnknown, EndOfStream, FrameCaptureFailure
from .types import BLACK, CancellationToken, ColorSequence, SamplingJob

ProgressCallback = Callable[[int], Union[None, Awaitable[None]]]


@dataclass
class SamplerConfig:
    sample_count: int = 240
    width: int = 32
    height: int = 32
    safety_margin: float = 0.1
    backend: str = "auto"  # auto | native | fallback


def compute_timestamps(duration: Optional[float], count: int, safety_margin: float = 0.1) -> List[float]:
    """Evenly spaced seek targets, clamped to stay ``safety_margin`` before the end."""
    if duration is None or not math.isfinite(duration) or duration <= 0:
        raise DurationUnknown()
    count = max(1, count)
    interval = duration / count
    ceiling = max(duration - safety_margin, 0.0)
    return [min(interval * index, ceiling) for index in range(count)]


class Sampler:
    """Abstract sampler interface."""

    async def sample(
        self,
        source: bytes,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ColorSequence:
        raise NotImplementedError


class FrameSampler(Sampler):
    """Samples frames sequentially and averages each into one color."""

    def __init__(
        self,
        config: SamplerConfig | None = None,
        selector: BackendSelector | None = None,
        averager: FrameAverager | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config or SamplerConfig()
        self._logger = logger or logging.getLogger(__name__)
        self._selector = selector or BackendSelector(self._config.backend, logger=self._logger)
        self._averager = averager or FrameAverager()

    async def sample(
        self,
        source: bytes,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ColorSequence:  # noqa: D401
        job = await self.run(source, on_progress, cancel_token)
        return job.colors

    async def run(
        self,
        source: bytes,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SamplingJob:
        """Run one sampling job and return its final state."""
        job = SamplingJob(source_size=len(source), total=max(1, self._config.sample_count))
        size = (self._config.width, self._config.height)

        session = await self._selector.open(source, size)
        job.backend = session.backend
        try:
            job.duration = session.duration
            timestamps = compute_timestamps(session.duration, job.total, self._config.safety_margin)
            self._logger.debug(
                "Sampling %d frames over %.2fs using backend=%s",
                job.total,
                job.duration,
                job.backend,
            )
            await session.prepare(timestamps)

            for index, timestamp in enumerate(timestamps):
                if cancel_token is not None and cancel_token.cancelled:
                    raise Cancelled()
                try:
                    frame = await session.capture(index, timestamp)
                    color = self._averager.average(frame)
                except FrameCaptureFailure as error:
                    self._logger.warning("Frame %d at %.2fs failed: %s", index, timestamp, error)
                    job.failed_frames += 1
                    color = BLACK
                except EndOfStream:
                    self._logger.warning("Decoder stopped after %d of %d frames", index, job.total)
                    break
                job.colors.append(color)
                await self._report(job, on_progress, self._progress_for(index + 1, job.total))
                await asyncio.sleep(0)

            if job.progress < 100:
                await self._report(job, on_progress, 100)
        finally:
            await session.close()

        return job

    @staticmethod
    def _progress_for(done: int, total: int) -> int:
        percent = round_half_up(100 * done / total)
        if done < total:
            percent = min(percent, 99)
        return percent

    async def _report(self, job: SamplingJob, on_progress: Optional[ProgressCallback], percent: int) -> None:
        job.progress = max(job.progress, percent)
        if on_progress is None:
            return
        outcome = on_progress(job.progress)
        if inspect.isawaitable(outcome):
            await outcome


__all__ = ["ProgressCallback", "SamplerConfig", "compute_timestamps", "Sampler", "FrameSampler"]
