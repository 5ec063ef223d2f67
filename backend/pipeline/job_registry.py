"""
In-memory registry of video generation jobs.

One registry instance is created by the application lifespan and shared by
the orchestrator (single writer per job id) and the status reporter (any
number of readers). Jobs live for the lifetime of the process; a restart
clears them.
"""

import secrets
import string
import threading
import time
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog

from pipeline.error_handler import JobNotFoundError
from pipeline.models import GenerationOptions, Job, JobStatus

logger = structlog.get_logger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_job_id() -> str:
    """
    Timestamp plus random suffix, e.g. ``job_1737072000000_k3j9x0a2q``.
    """
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"job_{int(time.time() * 1000)}_{suffix}"


class JobRegistry:
    """
    Thread-safe map of job id to Job.

    Readers get deep copies so a status query never observes a half-applied
    update. Progress is clamped so it never decreases and only reaches 100
    together with the ``completed`` status.
    """

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def create(self, prompt: str, options: Optional[GenerationOptions] = None) -> Job:
        """Register a new queued job and return a copy of it."""
        with self._lock:
            job_id = generate_job_id()
            while job_id in self._jobs:
                job_id = generate_job_id()

            job = Job(id=job_id, prompt=prompt, options=options or GenerationOptions())
            self._jobs[job_id] = job

        logger.info("job_registered", job_id=job_id, quality=job.options.quality)
        return job.model_copy(deep=True)

    def find(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def get(self, job_id: str) -> Job:
        """
        Snapshot of a job.

        Raises:
            JobNotFoundError: If the id was never registered
        """
        job = self.find(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def set_progress(self, job_id: str, progress: int) -> int:
        """
        Raise a job's progress; lower values are ignored.

        Returns the progress actually recorded.
        """
        with self._lock:
            job = self._require(job_id)
            ceiling = 100 if job.status == JobStatus.COMPLETED else 99
            job.progress = max(job.progress, min(progress, ceiling))
            return job.progress

    def mark_processing(self, job_id: str, progress: int) -> None:
        with self._lock:
            job = self._require(job_id)
            job.status = JobStatus.PROCESSING
            job.progress = max(job.progress, min(progress, 99))

    def mark_failed(self, job_id: str, error: str) -> None:
        with self._lock:
            job = self._require(job_id)
            job.status = JobStatus.FAILED
            job.error = error

    def mark_completed(self, job_id: str, local_path: str, used_fallback: bool = False) -> None:
        """
        Transition into ``completed`` with progress 100.

        ``completed_at`` is only stamped once; ``error`` is left untouched so a
        fallback completion keeps the original failure reason.
        """
        with self._lock:
            job = self._require(job_id)
            job.status = JobStatus.COMPLETED
            job.progress = 100
            job.artifact_local_path = local_path
            job.used_fallback = used_fallback
            if job.completed_at is None:
                job.completed_at = datetime.now(timezone.utc)

    def record_upload(self, job_id: str, remote_key: Optional[str], url: Optional[str]) -> None:
        """Store the durable-storage key and signed URL (both None on failure)."""
        with self._lock:
            job = self._require(job_id)
            job.artifact_remote_key = remote_key
            job.artifact_url = url
