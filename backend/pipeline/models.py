"""
Data models for video generation jobs.

The Job record is owned by the JobRegistry; everything else here is an
immutable value passed between the orchestrator, the status reporter and
the API layer.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Total processing estimate per quality tier, in seconds
QUALITY_ESTIMATES = {
    "fast": 30,
    "standard": 60,
    "high": 120,
}
DEFAULT_QUALITY_ESTIMATE = 60


def estimate_processing_time(quality: Optional[str]) -> int:
    """Fixed lookup by quality tier, not a measured value."""
    return QUALITY_ESTIMATES.get(quality or "standard", DEFAULT_QUALITY_ESTIMATE)


class CaptionSettings(BaseModel):
    """Caption preferences folded into the generation prompt."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    enabled: bool = False
    type: str = Field("standard", description="Caption style (e.g. 'standard', 'bold', 'karaoke')")
    font_size: str = Field("medium", alias="fontSize", description="Caption font size")


class GenerationOptions(BaseModel):
    """Request parameters for one generation job. Immutable once submitted."""

    model_config = ConfigDict(frozen=True)

    duration: int = Field(5, ge=1, description="Video duration in seconds")
    quality: str = Field("standard", description="Quality tier: fast, standard or high")
    resolution: str = Field("1080p", description="Output resolution")
    aspect_ratio: str = Field("16:9", description="Output aspect ratio")
    style: Optional[str] = None
    captions: Optional[CaptionSettings] = None
    project_id: Optional[str] = Field(None, description="Namespace for durable storage")


class Job(BaseModel):
    """Tracks the lifecycle of one video generation job."""

    id: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = Field(0, ge=0, le=100)
    prompt: str
    options: GenerationOptions = Field(default_factory=GenerationOptions)
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    artifact_local_path: Optional[str] = None
    artifact_remote_key: Optional[str] = None
    artifact_url: Optional[str] = None
    error: Optional[str] = None
    used_fallback: bool = False

    def elapsed_seconds(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        return int((now - self.start_time).total_seconds())


class SubmittedJob(BaseModel):
    """Returned to the caller as soon as a job is registered."""

    job_id: str
    status: JobStatus = JobStatus.QUEUED
    estimated_time: int
    prompt: str


class JobStatusView(BaseModel):
    """Status snapshot enriched with derived fields."""

    job_id: str
    status: JobStatus
    progress: int
    estimated_time_remaining: int
    error: Optional[str] = None
    artifact_url: Optional[str] = Field(None, description="Signed URL from durable storage, if any")
    local_path: Optional[str] = Field(None, description="Local fallback path")
    used_fallback: bool = False


class OperationSnapshot(BaseModel):
    """One reply from the generation provider (submit or poll)."""

    done: bool = False
    name: Optional[str] = None
    response: Optional[Dict[str, Any]] = None
    error: Optional[Any] = None


class StoredArtifact(BaseModel):
    """Result of a durable upload."""

    key: str
    signed_url: str
