"""High-level analysis orchestrator."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .averager import AveragerConfig, FrameAverager
from .backends import (
    LARGE_FILE_BYTES,
    BackendSelector,
    ConfirmCallback,
    FallbackBackend,
    NativeBackend,
)
from .clusterer import ClustererConfig, ColorClusterer
from .engine import get_engine
from .sampler import FrameSampler, ProgressCallback, SamplerConfig
from .types import AnalysisResult, CancellationToken, ColorSequence


@dataclass
class AnalyzerConfig:
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    averager: AveragerConfig = field(default_factory=AveragerConfig)
    cluster: ClustererConfig = field(default_factory=ClustererConfig)
    large_file_bytes: int = LARGE_FILE_BYTES
    work_dir: Optional[Path] = None
    ffmpeg_path: Optional[str] = None


@dataclass
class RibbonReport:
    """Result bundle produced by the analyzer."""

    colors: ColorSequence
    analysis: Optional[AnalysisResult]
    backend: Optional[str]
    duration_seconds: Optional[float]
    failed_frames: int = 0
    elapsed_seconds: float = 0.0


class Analyzer:
    """Coordinates decoding, sampling and clustering for one video at a time."""

    def __init__(
        self,
        config: AnalyzerConfig | None = None,
        logger: logging.Logger | None = None,
        confirm_large_file: Optional[ConfirmCallback] = None,
    ) -> None:
        self._config = config or AnalyzerConfig()
        self._logger = logger or logging.getLogger(__name__)
        selector = BackendSelector(
            mode=self._config.sampler.backend,
            native=NativeBackend(work_dir=self._config.work_dir, logger=self._logger),
            fallback=FallbackBackend(
                engine=get_engine(binary=self._config.ffmpeg_path, work_dir=self._config.work_dir),
                logger=self._logger,
            ),
            confirm_large_file=confirm_large_file,
            large_file_bytes=self._config.large_file_bytes,
            logger=self._logger,
        )
        self._sampler = FrameSampler(
            self._config.sampler,
            selector=selector,
            averager=FrameAverager(self._config.averager),
            logger=self._logger,
        )
        self._clusterer = ColorClusterer(self._config.cluster)

    async def run(
        self,
        source: bytes,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> RibbonReport:
        started = time.perf_counter()
        job = await self._sampler.run(source, on_progress, cancel_token)
        analysis = self.summarize(job.colors)
        elapsed = time.perf_counter() - started
        self._logger.info(
            "Sampled %d colors via %s in %.2fs (failed_frames=%d)",
            len(job.colors),
            job.backend,
            elapsed,
            job.failed_frames,
        )
        return RibbonReport(
            colors=job.colors,
            analysis=analysis,
            backend=job.backend,
            duration_seconds=job.duration,
            failed_frames=job.failed_frames,
            elapsed_seconds=elapsed,
        )

    def summarize(self, colors: ColorSequence) -> Optional[AnalysisResult]:
        return self._clusterer.analyze(colors)


async def process_video(
    data: bytes,
    on_progress: Optional[ProgressCallback] = None,
    *,
    config: AnalyzerConfig | None = None,
    confirm_large_file: Optional[ConfirmCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ColorSequence:
    """Sample ``data`` into an ordered color sequence, reporting percent progress."""
    analyzer = Analyzer(config, confirm_large_file=confirm_large_file)
    report = await analyzer.run(data, on_progress, cancel_token)
    return report.colors


__all__ = ["AnalyzerConfig", "RibbonReport", "Analyzer", "process_video"]
