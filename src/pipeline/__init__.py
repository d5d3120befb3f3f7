"""Frame-sampling and color-analysis pipeline for Palette Cut."""

from .analyzer import Analyzer, AnalyzerConfig, RibbonReport, process_video
from .averager import AveragerConfig, FrameAverager
from .backends import BackendSelector, DecodeBackend, DecodeSession, FallbackBackend, NativeBackend
from .clusterer import ClustererConfig, ColorClusterer, analyze_colors
from .colors import distance, from_hex, to_css, to_hex
from .engine import FfmpegEngine, get_engine
from .errors import (
    Cancelled,
    DurationUnknown,
    EndOfStream,
    EngineFailure,
    FrameCaptureFailure,
    SamplingError,
    UnsupportedFormat,
    UserCancelled,
)
from .sampler import FrameSampler, Sampler, SamplerConfig, compute_timestamps
from .types import AnalysisResult, CancellationToken, Cluster, Color, ColorSequence, SamplingJob

__all__ = [
    "Analyzer",
    "AnalyzerConfig",
    "RibbonReport",
    "process_video",
    "AveragerConfig",
    "FrameAverager",
    "BackendSelector",
    "DecodeBackend",
    "DecodeSession",
    "FallbackBackend",
    "NativeBackend",
    "ClustererConfig",
    "ColorClusterer",
    "analyze_colors",
    "distance",
    "from_hex",
    "to_css",
    "to_hex",
    "FfmpegEngine",
    "get_engine",
    "Cancelled",
    "DurationUnknown",
    "EndOfStream",
    "EngineFailure",
    "FrameCaptureFailure",
    "SamplingError",
    "UnsupportedFormat",
    "UserCancelled",
    "FrameSampler",
    "Sampler",
    "SamplerConfig",
    "compute_timestamps",
    "AnalysisResult",
    "CancellationToken",
    "Cluster",
    "Color",
    "ColorSequence",
    "SamplingJob",
]
