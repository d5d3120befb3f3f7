"""FastAPI service wrapping the Palette Cut sampling pipeline."""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import PurePath
from typing import Dict, Optional, Set
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Query, Request, Response

from . import __version__
from .config import (
    CLUSTER_THRESHOLD,
    FFMPEG_PATH,
    JOB_TIMEOUT_MS,
    LARGE_FILE_BYTES,
    MAX_UPLOAD_BYTES,
    SAMPLE_COUNT,
    SAMPLE_SIZE,
    SAMPLER_BACKEND,
    WORK_DIR,
    ensure_dirs,
)
from .schemas import AnalyzeResponse, JobStatus, ResultResponse, StatusResponse, Summary, Swatch
from src.pipeline import (
    Analyzer,
    AnalyzerConfig,
    ClustererConfig,
    Color,
    SamplerConfig,
    SamplingError,
    from_hex,
    to_css,
    to_hex,
)
from src.pipeline.analyzer import RibbonReport
from src.pipeline.ribbon import encode_png, render_ribbon

ensure_dirs()

logger = logging.getLogger("palettecut.service")

app = FastAPI(title="Palette Cut Service", version=__version__)

_jobs: Dict[str, ResultResponse] = {}
_jobs_lock = asyncio.Lock()
_background: Set[asyncio.Task] = set()


def _job_timeout() -> float | None:
    return JOB_TIMEOUT_MS / 1000 if JOB_TIMEOUT_MS > 0 else None


def _create_analyzer(confirm_large: bool) -> Analyzer:
    config = AnalyzerConfig(
        sampler=SamplerConfig(
            sample_count=max(1, SAMPLE_COUNT),
            width=max(1, SAMPLE_SIZE),
            height=max(1, SAMPLE_SIZE),
            backend=SAMPLER_BACKEND,
        ),
        cluster=ClustererConfig(threshold=CLUSTER_THRESHOLD),
        large_file_bytes=LARGE_FILE_BYTES,
        work_dir=WORK_DIR,
        ffmpeg_path=FFMPEG_PATH,
    )
    return Analyzer(config, logger, confirm_large_file=lambda _size: confirm_large)


def title_from_filename(filename: Optional[str]) -> str:
    """Strip directories and the last extension, as the ribbon header shows it."""
    name = PurePath((filename or "").replace("\\", "/")).name
    if "." in name[1:]:
        name = name.rsplit(".", 1)[0]
    return name or "Untitled"


def _swatch(color: Color) -> Swatch:
    return Swatch(hex=to_hex(color), css=to_css(color), r=color.r, g=color.g, b=color.b)


def _apply_report(record: ResultResponse, report: RibbonReport) -> None:
    record.status = JobStatus.COMPLETED
    record.progress = 100
    record.colors = [to_hex(color) for color in report.colors]
    record.backend = report.backend
    record.duration_seconds = report.duration_seconds
    record.sample_count = len(report.colors)
    record.failed_frames = report.failed_frames
    if report.analysis is not None:
        record.summary = Summary(
            average=_swatch(report.analysis.average),
            dominant=_swatch(report.analysis.dominant),
            least=_swatch(report.analysis.least),
        )


async def _run_job(job_id: str, data: bytes, confirm_large: bool) -> ResultResponse:
    analyzer = _create_analyzer(confirm_large)
    started = time.perf_counter()

    async def on_progress(percent: int) -> None:
        async with _jobs_lock:
            _jobs[job_id].progress = percent

    async with _jobs_lock:
        _jobs[job_id].status = JobStatus.RUNNING

    detail: Optional[str] = None
    report: Optional[RibbonReport] = None
    try:
        timeout = _job_timeout()
        if timeout is not None:
            report = await asyncio.wait_for(analyzer.run(data, on_progress), timeout=timeout)
        else:
            report = await analyzer.run(data, on_progress)
    except SamplingError as error:
        logger.warning("Job %s failed: %s", job_id, error.message)
        detail = error.message
    except asyncio.TimeoutError:
        logger.warning("Job %s timed out after %.2fs", job_id, time.perf_counter() - started)
        detail = "Processing timed out."
    except Exception:
        logger.exception("Job %s failed unexpectedly", job_id)
        detail = "Video processing failed."

    async with _jobs_lock:
        record = _jobs[job_id]
        if report is None:
            record.status = JobStatus.FAILED
            record.detail = detail
        else:
            _apply_report(record, report)
        snapshot = record.model_copy(deep=True)

    if report is not None:
        logger.info(
            "Job %s completed in %.2fs (samples=%d, backend=%s)",
            job_id,
            time.perf_counter() - started,
            snapshot.sample_count,
            snapshot.backend,
        )
    return snapshot


@app.get("/health")
def health():
    return {"status": "ok", "service": "palettecut", "version": __version__}


@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    request: Request,
    filename: str = Query("untitled", description="Original file name, used for the title"),
    confirm_large: bool = Query(False, description="Allow software decode of files above the large-file threshold"),
    background: bool = Query(False, description="Return immediately and poll /status for progress"),
) -> AnalyzeResponse:
    """Sample the uploaded video body into a color ribbon."""

    content_type = (request.headers.get("content-type") or "").lower()
    if content_type and not (content_type.startswith("video/") or content_type == "application/octet-stream"):
        raise HTTPException(status_code=415, detail="Upload must be a video file")

    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Empty upload")
    if MAX_UPLOAD_BYTES > 0 and len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Upload exceeds the configured size limit")

    job_id = uuid4().hex
    async with _jobs_lock:
        _jobs[job_id] = ResultResponse(
            job_id=job_id,
            status=JobStatus.PENDING,
            title=title_from_filename(filename),
        )

    if background:
        task = asyncio.create_task(_run_job(job_id, data, confirm_large))
        _background.add(task)
        task.add_done_callback(_background.discard)
        return AnalyzeResponse(job_id=job_id, status=JobStatus.PENDING)

    result = await _run_job(job_id, data, confirm_large)
    if result.status is JobStatus.FAILED:
        raise HTTPException(status_code=422, detail=result.detail or "Video processing failed.")
    return AnalyzeResponse(job_id=job_id, status=result.status)


@app.get("/status/{job_id}", response_model=StatusResponse)
async def status(job_id: str) -> StatusResponse:
    """Return the current status and progress for a job."""

    async with _jobs_lock:
        result = _jobs.get(job_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Unknown job id")
    return StatusResponse(job_id=job_id, status=result.status, progress=result.progress, detail=result.detail)


@app.get("/result/{job_id}", response_model=ResultResponse)
async def result(job_id: str) -> ResultResponse:
    """Return the final result for a job."""

    async with _jobs_lock:
        result = _jobs.get(job_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Unknown job id")
    return result


@app.get("/ribbon/{job_id}.png")
@app.get("/ribbon/{job_id}")
async def ribbon(
    job_id: str,
    height: int = Query(300, ge=1, le=4096),
    stripe_width: int = Query(4, ge=1, le=64),
) -> Response:
    """Export the sampled colors of a completed job as a PNG ribbon."""

    async with _jobs_lock:
        result = _jobs.get(job_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Unknown job id")
    if result.status is not JobStatus.COMPLETED or not result.colors:
        raise HTTPException(status_code=409, detail="Job has no colors to export")
    colors = [from_hex(value) for value in result.colors]
    image = await asyncio.to_thread(render_ribbon, colors, height, stripe_width)
    return Response(content=encode_png(image), media_type="image/png")
