"""Error kinds raised by the Palette Cut sampling pipeline."""
from __future__ import annotations


class SamplingError(RuntimeError):
    """Base class for sampling failures that carry a user-facing message."""

    default_message = "Video sampling failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class DurationUnknown(SamplingError):
    """Raised when the video duration is missing, infinite or zero."""

    default_message = "Could not determine video duration. Try a different file format."


class UnsupportedFormat(SamplingError):
    """Raised when native decode cannot play the container or codec."""

    default_message = "Format not supported: the video type cannot be decoded natively."


class FrameCaptureFailure(SamplingError):
    """Raised when a single frame cannot be read; recovered by the sampler."""

    default_message = "Frame extraction failed."


class EndOfStream(SamplingError):
    """Raised by a decode session when no further frames are available."""

    default_message = "Decoder produced fewer frames than requested."


class UserCancelled(SamplingError):
    """Raised when the user declines a large fallback decode."""

    default_message = "Processing cancelled: large file was not confirmed."


class Cancelled(SamplingError):
    """Raised when a cancellation token is triggered mid-run."""

    default_message = "Processing cancelled."


class EngineFailure(SamplingError):
    """Raised when the fallback engine fails to load or execute."""

    default_message = "Fallback decoder failed."


__all__ = [
    "SamplingError",
    "DurationUnknown",
    "UnsupportedFormat",
    "FrameCaptureFailure",
    "EndOfStream",
    "UserCancelled",
    "Cancelled",
    "EngineFailure",
]
