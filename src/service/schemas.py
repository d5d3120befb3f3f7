"""Pydantic models for the Palette Cut service."""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """Lifecycle states for sampling jobs."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Swatch(BaseModel):
    """A single color rendered for display."""

    hex: str = Field(..., description="Uppercase #RRGGBB encoding")
    css: str = Field(..., description="CSS rgb() encoding")
    r: int = Field(..., ge=0, le=255)
    g: int = Field(..., ge=0, le=255)
    b: int = Field(..., ge=0, le=255)


class Summary(BaseModel):
    average: Swatch
    dominant: Swatch
    least: Swatch


class AnalyzeResponse(BaseModel):
    job_id: str
    status: JobStatus


class StatusResponse(BaseModel):
    job_id: str
    status: JobStatus
    progress: int = Field(0, ge=0, le=100, description="Integer percent complete")
    detail: Optional[str] = None


class ResultResponse(BaseModel):
    job_id: str
    status: JobStatus
    title: str = Field(..., description="Display title derived from the file name")
    progress: int = Field(0, ge=0, le=100)
    detail: Optional[str] = None
    summary: Optional[Summary] = None
    colors: List[str] = Field(default_factory=list, description="Sampled colors as hex, in temporal order")
    backend: Optional[str] = Field(None, description="Decode backend used: native|fallback")
    duration_seconds: Optional[float] = None
    sample_count: int = 0
    failed_frames: int = 0
