"""
Read-only status queries for video generation jobs.

Signed URLs expire, so whenever a completed job has a durable-storage key a
fresh URL is minted on every query instead of returning the one stored at
upload time.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from config import settings
from pipeline.error_handler import JobNotReadyError
from pipeline.job_registry import JobRegistry
from pipeline.models import Job, JobStatus, JobStatusView, estimate_processing_time
from services.s3_storage import ArtifactStore

logger = structlog.get_logger(__name__)


class StatusReporter:
    """
    Answers status and artifact-location queries from the job registry.
    """

    def __init__(
        self,
        registry: JobRegistry,
        artifact_store: Optional[ArtifactStore] = None,
        signed_url_ttl: Optional[int] = None,
    ):
        self.registry = registry
        self.artifact_store = artifact_store
        self.signed_url_ttl = signed_url_ttl or settings.SIGNED_URL_EXPIRY

    async def _fresh_signed_url(self, job: Job) -> Optional[str]:
        """None when there is nothing to sign or signing fails."""
        if self.artifact_store is None or not job.artifact_remote_key:
            return None
        try:
            return await self.artifact_store.get_signed_url(job.artifact_remote_key, self.signed_url_ttl)
        except Exception as e:
            logger.warning(
                "signed_url_refresh_failed",
                job_id=job.id,
                key=job.artifact_remote_key,
                error=str(e),
            )
            return None

    async def get_status(self, job_id: str, now: Optional[datetime] = None) -> JobStatusView:
        """
        Snapshot of a job with derived fields.

        Raises:
            JobNotFoundError: If the job id is unknown
        """
        job = self.registry.get(job_id)
        now = now or datetime.now(timezone.utc)

        remaining = max(0, estimate_processing_time(job.options.quality) - job.elapsed_seconds(now))

        if job.status == JobStatus.COMPLETED and job.artifact_remote_key:
            artifact_url = await self._fresh_signed_url(job)
        else:
            artifact_url = job.artifact_url

        return JobStatusView(
            job_id=job.id,
            status=job.status,
            progress=job.progress,
            estimated_time_remaining=remaining,
            error=job.error,
            artifact_url=artifact_url,
            local_path=job.artifact_local_path,
            used_fallback=job.used_fallback,
        )

    async def get_artifact_location(self, job_id: str) -> str:
        """
        Where to fetch a finished job's video: a signed URL, else the local path.

        Raises:
            JobNotFoundError: If the job id is unknown
            JobNotReadyError: If the job has not completed
        """
        job = self.registry.get(job_id)
        if job.status != JobStatus.COMPLETED:
            raise JobNotReadyError(job_id, job.status.value)

        url = await self._fresh_signed_url(job)
        if url:
            return url

        if not job.artifact_local_path:
            raise JobNotReadyError(job_id, job.status.value)

        logger.debug("artifact_location_local", job_id=job_id, path=job.artifact_local_path)
        return job.artifact_local_path
