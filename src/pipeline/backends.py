"""Decode backends: native OpenCV decode with an ffmpeg software fallback."""
from __future__ import annotations

import asyncio
import inspect
import logging
import math
import os
import re
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple, TypeVar, Union

import cv2
import numpy as np

from .engine import FfmpegEngine, get_engine
from .errors import (
    DurationUnknown,
    EndOfStream,
    EngineFailure,
    FrameCaptureFailure,
    SamplingError,
    UnsupportedFormat,
    UserCancelled,
)

FALLBACK_DURATION_SECONDS = 7200.0
FRAME_OVERRUN = 10
LARGE_FILE_BYTES = 1024 ** 3

_DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d{1,2}):(\d{1,2}(?:\.\d+)?)")

Size = Tuple[int, int]
T = TypeVar("T")
ConfirmCallback = Callable[[int], Union[bool, Awaitable[bool]]]


def parse_duration(log: str) -> Optional[float]:
    """Extract the ``Duration: HH:MM:SS.ss`` value from an ffmpeg log, in seconds."""
    match = _DURATION_PATTERN.search(log or "")
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    value = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    return value if value > 0 else None


async def run_blocking(
    func: Callable[..., T],
    *args: Any,
    on_cancel: Optional[Callable[[], None]] = None,
    discard: Optional[Callable[[T], None]] = None,
) -> T:
    """Run ``func`` in a worker thread; never return before the thread is done.

    A worker thread cannot be interrupted, so when the awaiting task is
    cancelled ``on_cancel`` is called to cut the work short and the thread is
    waited for before the cancellation propagates. If the thread still
    completes with a result, ``discard`` releases it.
    """
    future = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        if on_cancel is not None:
            on_cancel()
        while not future.done():
            try:
                await asyncio.wait({future})
            except asyncio.CancelledError:
                continue
        if not future.cancelled() and future.exception() is None and discard is not None:
            discard(future.result())
        raise


class DecodeSession:
    """An opened video ready to produce small RGB rasters at given timestamps."""

    backend: str = "unknown"
    duration: float = 0.0

    async def prepare(self, timestamps: Sequence[float]) -> None:
        """Hook run once before the first capture."""

    async def capture(self, index: int, timestamp: float) -> np.ndarray:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


class DecodeBackend:
    """Abstract decode strategy."""

    name: str = "unknown"

    async def open(self, source: bytes, size: Size) -> DecodeSession:
        raise NotImplementedError


# ----------------------------------------------------------------------
class NativeSession(DecodeSession):
    backend = "native"

    def __init__(self, capture: cv2.VideoCapture, path: Path, duration: float, size: Size) -> None:
        self._capture = capture
        self._path = path
        self._size = size
        self._lock = threading.Lock()
        self._closed = False
        self.duration = duration

    async def capture(self, index: int, timestamp: float) -> np.ndarray:
        return await run_blocking(self._capture_sync, timestamp)

    def _capture_sync(self, timestamp: float) -> np.ndarray:
        with self._lock:
            if self._closed:
                raise FrameCaptureFailure("Decode session already closed")
            try:
                self._capture.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
                ok, frame = self._capture.read()
                if not ok or frame is None:
                    raise FrameCaptureFailure(f"Unable to decode frame at {timestamp:.2f}s")
                resized = cv2.resize(frame, self._size, interpolation=cv2.INTER_AREA)
                return cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)
            except cv2.error as error:
                raise FrameCaptureFailure(f"Frame read failed at {timestamp:.2f}s: {error}") from error

    async def close(self) -> None:
        await run_blocking(self._close_sync)

    def _close_sync(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._capture.release()
            self._path.unlink(missing_ok=True)


def _close_native(session: NativeSession) -> None:
    session._close_sync()


class NativeBackend(DecodeBackend):
    """Decodes with OpenCV's bundled video I/O (host codecs only)."""

    name = "native"

    def __init__(self, work_dir: Optional[Path] = None, logger: Optional[logging.Logger] = None) -> None:
        self._work_dir = work_dir
        self._logger = logger or logging.getLogger(__name__)

    async def open(self, source: bytes, size: Size) -> DecodeSession:
        return await run_blocking(self._open_sync, source, size, discard=_close_native)

    def _open_sync(self, source: bytes, size: Size) -> DecodeSession:
        fd, raw_path = tempfile.mkstemp(prefix="palettecut_", suffix=".video", dir=self._work_dir)
        path = Path(raw_path)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(source)
        except OSError:
            path.unlink(missing_ok=True)
            raise

        capture = cv2.VideoCapture(str(path))
        try:
            if not capture.isOpened():
                raise UnsupportedFormat()
            ok, _frame = capture.read()
            if not ok:
                raise UnsupportedFormat("Decoding error: the video is corrupted or the format is not supported.")
            fps = float(capture.get(cv2.CAP_PROP_FPS) or 0.0)
            frame_count = float(capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0)
            duration = frame_count / fps if fps > 0 else math.nan
            if not math.isfinite(duration) or duration <= 0:
                raise DurationUnknown()
        except BaseException:
            capture.release()
            path.unlink(missing_ok=True)
            raise

        self._logger.debug("Native decode opened: %.2fs at %.3f fps", duration, fps)
        return NativeSession(capture, path, duration, size)


# ----------------------------------------------------------------------
class FallbackSession(DecodeSession):
    backend = "fallback"

    def __init__(
        self,
        engine: FfmpegEngine,
        input_name: str,
        prefix: str,
        duration: float,
        size: Size,
        logger: logging.Logger,
    ) -> None:
        self._engine = engine
        self._input_name = input_name
        self._prefix = prefix
        self._size = size
        self._logger = logger
        self._frame_cap = 0
        self._closed = False
        self.duration = duration

    def frame_name(self, index: int) -> str:
        return f"{self._prefix}_{index + 1:05d}.png"

    async def prepare(self, timestamps: Sequence[float]) -> None:
        count = max(1, len(timestamps))
        self._frame_cap = count + FRAME_OVERRUN
        width, height = self._size
        args = [
            "-y",
            "-loglevel",
            "error",
            "-i",
            self._input_name,
            "-vf",
            f"fps={count}/{self.duration:.6f},scale={width}:{height}",
            "-frames:v",
            str(self._frame_cap),
            f"{self._prefix}_%05d.png",
        ]
        await run_blocking(self._engine.exec, args, on_cancel=self._engine.cancel)

    async def capture(self, index: int, timestamp: float) -> np.ndarray:
        return await run_blocking(self._capture_sync, index, timestamp)

    def _capture_sync(self, index: int, timestamp: float) -> np.ndarray:
        if index >= self._frame_cap:
            raise EndOfStream()
        name = self.frame_name(index)
        if not self._engine.exists(name):
            raise EndOfStream(f"Decoder produced {index} frames")
        try:
            data = self._engine.read_file(name)
        except OSError as error:
            raise FrameCaptureFailure(f"Unable to read {name}: {error}") from error
        finally:
            self._engine.delete_file(name)

        frame_bgr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
        if frame_bgr is None:
            raise FrameCaptureFailure(f"Unable to decode frame near {timestamp:.2f}s")
        if (frame_bgr.shape[1], frame_bgr.shape[0]) != self._size:
            frame_bgr = cv2.resize(frame_bgr, self._size, interpolation=cv2.INTER_AREA)
        return cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await run_blocking(self._cleanup_sync)
        finally:
            self._engine.lock.release()

    def _cleanup_sync(self) -> None:
        self._engine.delete_file(self._input_name)
        for name in self._engine.list_files(self._prefix):
            self._engine.delete_file(name)


def _cleanup_fallback(session: FallbackSession) -> None:
    session._cleanup_sync()


class FallbackBackend(DecodeBackend):
    """Software decode through the shared ffmpeg engine."""

    name = "fallback"

    def __init__(self, engine: Optional[FfmpegEngine] = None, logger: Optional[logging.Logger] = None) -> None:
        self._engine = engine
        self._logger = logger or logging.getLogger(__name__)

    @property
    def engine(self) -> FfmpegEngine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    async def open(self, source: bytes, size: Size) -> DecodeSession:
        engine = self.engine
        await run_blocking(engine.load)
        # Non-blocking acquire: a cancelled task must never leave the lock held.
        while not engine.lock.acquire(blocking=False):
            await asyncio.sleep(0.05)
        try:
            return await run_blocking(
                self._open_sync,
                engine,
                source,
                size,
                on_cancel=engine.cancel,
                discard=_cleanup_fallback,
            )
        except BaseException:
            engine.lock.release()
            raise

    def _open_sync(self, engine: FfmpegEngine, source: bytes, size: Size) -> DecodeSession:
        job = uuid.uuid4().hex[:12]
        input_name = f"{job}_input"
        prefix = f"{job}_frame"
        engine.write_file(input_name, source)
        try:
            log = engine.exec(["-i", input_name], check=False)
            duration = parse_duration(log)
            if duration is None:
                self._logger.warning(
                    "Fallback probe found no duration; assuming %.0fs",
                    FALLBACK_DURATION_SECONDS,
                )
                duration = FALLBACK_DURATION_SECONDS
        except BaseException:
            engine.delete_file(input_name)
            raise
        self._logger.debug("Fallback decode opened: %.2fs (job=%s)", duration, job)
        return FallbackSession(engine, input_name, prefix, duration, size, self._logger)


# ----------------------------------------------------------------------
class BackendSelector:
    """Trial-then-fallback policy over the native and software backends.

    ``mode`` is ``auto`` (native first, software on unsupported format or
    unknown duration), ``native`` or ``fallback``.
    """

    MODES = ("auto", "native", "fallback")

    def __init__(
        self,
        mode: str = "auto",
        native: Optional[DecodeBackend] = None,
        fallback: Optional[DecodeBackend] = None,
        confirm_large_file: Optional[ConfirmCallback] = None,
        large_file_bytes: int = LARGE_FILE_BYTES,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._mode = (mode or "auto").lower()
        self._logger = logger or logging.getLogger(__name__)
        self._native = native or NativeBackend(logger=self._logger)
        self._fallback = fallback or FallbackBackend(logger=self._logger)
        self._confirm_large_file = confirm_large_file
        self._large_file_bytes = large_file_bytes

    async def open(self, source: bytes, size: Size) -> DecodeSession:
        if self._mode not in self.MODES:
            raise SamplingError(f"Unsupported decode backend '{self._mode}'")

        if self._mode in ("auto", "native"):
            try:
                return await self._native.open(source, size)
            except (UnsupportedFormat, DurationUnknown) as error:
                if self._mode == "native":
                    raise
                self._logger.warning("Native decode unavailable (%s); falling back to software decode", error)

        await self._confirm(len(source))
        try:
            return await self._fallback.open(source, size)
        except SamplingError:
            raise
        except Exception as error:
            raise EngineFailure(f"Fallback decoder failed: {error}") from error

    async def _confirm(self, size: int) -> None:
        if size <= self._large_file_bytes:
            return
        if self._confirm_large_file is None:
            raise UserCancelled()
        answer = self._confirm_large_file(size)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            raise UserCancelled()


__all__ = [
    "FALLBACK_DURATION_SECONDS",
    "FRAME_OVERRUN",
    "LARGE_FILE_BYTES",
    "parse_duration",
    "run_blocking",
    "DecodeSession",
    "DecodeBackend",
    "NativeSession",
    "NativeBackend",
    "FallbackSession",
    "FallbackBackend",
    "BackendSelector",
]
