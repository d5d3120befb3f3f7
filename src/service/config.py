"""Runtime configuration for the Palette Cut service."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

_BASE_DIR = Path(os.environ.get("PALETTE_BASE_DIR", ".")).resolve()

WORK_DIR = Path(os.environ.get("PALETTE_WORK_DIR", _BASE_DIR / ".cache" / "decode")).resolve()
FFMPEG_PATH: Optional[str] = os.environ.get("PALETTE_FFMPEG_PATH") or None

SAMPLE_COUNT = int(os.environ.get("PALETTE_SAMPLE_COUNT", "240"))
SAMPLE_SIZE = int(os.environ.get("PALETTE_SAMPLE_SIZE", "32"))
CLUSTER_THRESHOLD = float(os.environ.get("PALETTE_CLUSTER_THRESHOLD", "30.0"))
SAMPLER_BACKEND = os.environ.get("PALETTE_SAMPLER_BACKEND", "auto")
LARGE_FILE_BYTES = int(os.environ.get("PALETTE_LARGE_FILE_BYTES", str(1024 ** 3)))
MAX_UPLOAD_BYTES = int(os.environ.get("PALETTE_MAX_UPLOAD_BYTES", "0"))
JOB_TIMEOUT_MS = int(os.environ.get("PALETTE_JOB_TIMEOUT_MS", "0"))


def ensure_dirs() -> Path:
    WORK_DIR.mkdir(parents=True, exist_ok=True)
    return WORK_DIR


__all__ = [
    "WORK_DIR",
    "FFMPEG_PATH",
    "SAMPLE_COUNT",
    "SAMPLE_SIZE",
    "CLUSTER_THRESHOLD",
    "SAMPLER_BACKEND",
    "LARGE_FILE_BYTES",
    "MAX_UPLOAD_BYTES",
    "JOB_TIMEOUT_MS",
    "ensure_dirs",
]
