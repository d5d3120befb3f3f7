"""Process-wide ffmpeg engine used by the software decode fallback."""
from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import EngineFailure

FFMPEG_PATH = shutil.which("ffmpeg")


class FfmpegEngine:
    """Owns the ffmpeg binary and a private workspace directory.

    The workspace plays the role of the engine's virtual filesystem: inputs are
    written into it, extraction passes write numbered images into it and the
    fallback session reads them back. Loading is lazy and happens once; there
    is no teardown for the life of the process.

    The engine is not safe for interleaved jobs. A fallback session holds
    ``lock`` from open until close, so concurrent jobs run one after another.
    """

    def __init__(
        self,
        binary: Optional[str] = None,
        work_dir: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._binary = binary
        self._work_dir = work_dir
        self._logger = logger or logging.getLogger(__name__)
        self._root: Optional[Path] = None
        self._load_lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._process_lock = threading.Lock()
        self.lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._root is not None

    @property
    def root(self) -> Path:
        if self._root is None:
            raise EngineFailure("Fallback decoder has not been loaded")
        return self._root

    def load(self) -> None:
        with self._load_lock:
            if self._root is not None:
                return
            binary = self._binary or FFMPEG_PATH
            if not binary:
                raise EngineFailure("ffmpeg executable not found in PATH")
            try:
                if self._work_dir is not None:
                    Path(self._work_dir).mkdir(parents=True, exist_ok=True)
                root = Path(tempfile.mkdtemp(prefix="palettecut_fs_", dir=self._work_dir))
            except OSError as error:
                raise EngineFailure(f"Unable to create decoder workspace: {error}") from error
            self._binary = binary
            self._root = root
            self._logger.debug("Loaded ffmpeg engine binary=%s workspace=%s", binary, root)

    # ------------------------------------------------------------------
    def _path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValueError(f"Invalid workspace file name: {name!r}")
        return self.root / name

    def write_file(self, name: str, data: bytes) -> None:
        try:
            self._path(name).write_bytes(data)
        except OSError as error:
            raise EngineFailure(f"Unable to write {name} to decoder workspace: {error}") from error

    def read_file(self, name: str) -> bytes:
        return self._path(name).read_bytes()

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()

    def delete_file(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)

    def list_files(self, prefix: str) -> List[str]:
        return sorted(entry.name for entry in self.root.iterdir() if entry.name.startswith(prefix))

    # ------------------------------------------------------------------
    def exec(self, args: Sequence[str], check: bool = True) -> str:
        """Run ffmpeg inside the workspace and return its diagnostic log.

        Blocks until the process exits. ``cancel`` from another thread kills it.
        """
        cmd = [self._binary or "ffmpeg", "-hide_banner", "-nostdin", *args]
        self._logger.debug("ffmpeg %s", " ".join(args))
        with self._process_lock:
            try:
                process = subprocess.Popen(
                    cmd,
                    cwd=self.root,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.PIPE,
                )
            except OSError as error:
                raise EngineFailure(f"Unable to execute ffmpeg: {error}") from error
            self._process = process
        try:
            _stdout, stderr = process.communicate()
        finally:
            with self._process_lock:
                self._process = None
        log = stderr.decode("utf-8", errors="replace")
        if check and process.returncode != 0:
            tail = log.strip().splitlines()[-1:] or ["no output"]
            raise EngineFailure(f"ffmpeg exited with status {process.returncode}: {tail[0]}")
        return log

    def cancel(self) -> None:
        """Kill the ffmpeg process currently running, if any."""
        with self._process_lock:
            process = self._process
            if process is None or process.poll() is not None:
                return
            self._logger.debug("Killing ffmpeg pid=%s", process.pid)
            process.kill()


_engine: Optional[FfmpegEngine] = None
_engine_guard = threading.Lock()


def get_engine(binary: Optional[str] = None, work_dir: Optional[Path] = None) -> FfmpegEngine:
    """Return the shared engine, creating it on first use.

    Arguments only take effect on the call that creates the engine.
    """
    global _engine
    with _engine_guard:
        if _engine is None:
            _engine = FfmpegEngine(binary=binary, work_dir=work_dir)
        return _engine


__all__ = ["FFMPEG_PATH", "FfmpegEngine", "get_engine"]
