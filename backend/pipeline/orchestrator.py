"""
Video Job Orchestrator

Drives one video generation job from submission to a terminal state:
1. Submit the prompt to the generation provider
2. Poll the long-running operation on a fixed interval, up to a fixed bound
3. Extract the video bytes and write them to the uploads directory
4. Hand the artifact off to durable storage (best effort)

Whatever goes wrong along the way, the job ends ``completed`` with a playable
file: failures are recorded in ``error`` and a placeholder video takes the
place of the real one.

Each job runs as its own asyncio task owned by a JobTaskSupervisor, so the
caller that submitted it never waits on the provider.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Coroutine, Dict, Optional

import structlog

from config import settings
from pipeline.artifacts import extract_video_bytes, write_artifact, write_placeholder
from pipeline.error_handler import (
    GenerationTimeoutError,
    PipelineError,
    ProviderError,
    describe_failure,
)
from pipeline.job_registry import JobRegistry
from pipeline.models import GenerationOptions, Job, SubmittedJob, estimate_processing_time
from services.google_auth import AccessTokenProvider
from services.s3_storage import ArtifactStore
from services.veo_client import GenerationProvider

logger = structlog.get_logger(__name__)

# Progress checkpoints
PROGRESS_STARTED = 10
PROGRESS_SUBMITTING = 15
PROGRESS_POLLING = 20
PROGRESS_POLLING_MAX = 90
PROGRESS_EXTRACTING = 95


def polling_progress(attempt: int, max_polls: int) -> int:
    """
    Map poll attempts linearly onto the 20-90% range.

    Example:
        >>> polling_progress(60, 120)
        55
        >>> polling_progress(120, 120)
        90
    """
    span = PROGRESS_POLLING_MAX - PROGRESS_POLLING
    return min(PROGRESS_POLLING + (attempt * span) // max(max_polls, 1), PROGRESS_POLLING_MAX)


def build_provider_prompt(prompt: str, options: GenerationOptions) -> str:
    """Fold caption preferences into the prompt sent to the provider."""
    captions = options.captions
    if captions is not None and captions.enabled:
        return (
            f"{prompt}. Generate with {captions.type} style captions/subtitles, "
            f"{captions.font_size} font size."
        )
    return prompt


class JobTaskSupervisor:
    """
    Owns the background tasks driving jobs.

    Keeps a reference to every running task (so none is garbage collected
    mid-flight) and logs any exception that escapes one, since there is no
    caller left to report it to.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, job_id: str, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"video-job-{job_id}")
        self._tasks[job_id] = task

        def task_done_callback(t: asyncio.Task, job_id: str = job_id) -> None:
            self._tasks.pop(job_id, None)
            if t.cancelled():
                logger.warning("video_job_task_cancelled", job_id=job_id)
                return
            exc = t.exception()
            if exc is not None:
                logger.error(
                    "video_job_task_failed",
                    job_id=job_id,
                    error=str(exc),
                    exc_type=type(exc).__name__,
                    exc_info=exc,
                )

        task.add_done_callback(task_done_callback)
        return task

    async def wait(self, job_id: str, timeout: Optional[float] = None) -> None:
        """Wait for a job's task to finish, if it is still running."""
        task = self._tasks.get(job_id)
        if task is None:
            return
        await asyncio.wait({task}, timeout=timeout)

    async def shutdown(self) -> None:
        """Cancel outstanding jobs; they are abandoned like on process exit."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("video_job_supervisor_stopped", cancelled=len(tasks))


class VideoJobOrchestrator:
    """
    Orchestrate video generation jobs.

    Example:
        >>> orchestrator = VideoJobOrchestrator(
        ...     registry=JobRegistry(),
        ...     provider=VeoClient(),
        ...     token_provider=GoogleAccessTokenProvider(),
        ...     artifact_store=create_artifact_store(),
        ... )
        >>> submitted = await orchestrator.submit_job(
        ...     "A drone shot over a foggy forest at sunrise",
        ...     GenerationOptions(duration=8, quality="fast"),
        ... )
        >>> submitted.status
        <JobStatus.QUEUED: 'queued'>
    """

    def __init__(
        self,
        registry: JobRegistry,
        provider: GenerationProvider,
        token_provider: AccessTokenProvider,
        artifact_store: Optional[ArtifactStore] = None,
        supervisor: Optional[JobTaskSupervisor] = None,
        upload_dir: Optional[str] = None,
        poll_interval: Optional[float] = None,
        max_polls: Optional[int] = None,
    ):
        """
        Initialize with collaborators.

        Args:
            registry: Shared job registry
            provider: Generation provider client
            token_provider: Source of bearer tokens, asked once per provider call
            artifact_store: Durable storage; None keeps artifacts local only
            supervisor: Background task owner (one is created if None)
            upload_dir: Root of local artifact storage (default: settings.UPLOAD_DIR)
            poll_interval: Seconds between polls (default: 5)
            max_polls: Poll bound before a job times out (default: 120)
        """
        self.registry = registry
        self.provider = provider
        self.token_provider = token_provider
        self.artifact_store = artifact_store
        self.supervisor = supervisor or JobTaskSupervisor()
        self.artifact_dir = Path(upload_dir or settings.UPLOAD_DIR) / "videos"
        self.poll_interval = settings.VEO_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.max_polls = max_polls or settings.VEO_MAX_POLLS

        logger.info(
            "video_job_orchestrator_initialized",
            artifact_dir=str(self.artifact_dir),
            poll_interval=self.poll_interval,
            max_polls=self.max_polls,
            durable_storage=artifact_store is not None,
        )

    async def submit_job(self, prompt: str, options: Optional[GenerationOptions] = None) -> SubmittedJob:
        """
        Register a job and start driving it in the background.

        Returns immediately with the job id.

        Raises:
            ConfigurationError: If provider credentials are missing (no job is registered)
        """
        self.token_provider.ensure_configured()

        options = options or GenerationOptions()
        job = self.registry.create(prompt, options)
        self.supervisor.spawn(job.id, self._drive(job.id))

        logger.info(
            "video_job_submitted",
            job_id=job.id,
            quality=options.quality,
            duration=options.duration,
            project_id=options.project_id,
        )

        return SubmittedJob(
            job_id=job.id,
            estimated_time=estimate_processing_time(options.quality),
            prompt=prompt,
        )

    async def _drive(self, job_id: str) -> None:
        """The driving sequence for one job."""
        job = self.registry.get(job_id)
        log = logger.bind(job_id=job_id)

        try:
            path = await self._generate(job, log)
        except Exception as e:
            await self._complete_with_placeholder(job, e, log)
            return

        self.registry.mark_completed(job_id, str(path))
        log.info("video_job_completed", path=str(path))
        await self._persist_remote(job, path, log)

    async def _generate(self, job: Job, log) -> Path:
        self.registry.mark_processing(job.id, PROGRESS_STARTED)
        prompt = build_provider_prompt(job.prompt, job.options)
        log.info(
            "video_generation_started",
            quality=job.options.quality,
            duration=job.options.duration,
            captions=bool(job.options.captions and job.options.captions.enabled),
        )

        token = await self.token_provider.get_access_token()
        self.registry.set_progress(job.id, PROGRESS_SUBMITTING)
        operation = await self.provider.submit(prompt, job.options.duration, token)

        if operation.error:
            raise ProviderError(f"Veo API error: {_format_provider_error(operation.error)}")

        if operation.done:
            log.info("video_generation_completed_immediately")
            result = operation.response
        else:
            if not operation.name:
                raise ProviderError("Provider returned neither a result nor an operation name")
            self.registry.set_progress(job.id, PROGRESS_POLLING)
            log.info("video_operation_started", operation=operation.name)
            result = await self._poll_until_done(job.id, operation.name, log)

        self.registry.set_progress(job.id, PROGRESS_EXTRACTING)
        data = extract_video_bytes(result)
        return await write_artifact(self.artifact_dir, job.id, data)

    async def _poll_until_done(self, job_id: str, operation_name: str, log) -> Optional[Dict[str, Any]]:
        for attempt in range(1, self.max_polls + 1):
            await asyncio.sleep(self.poll_interval)

            # Tokens may expire during a long poll
            token = await self.token_provider.get_access_token()
            operation = await self.provider.poll(operation_name, token)
            log.debug("video_operation_polled", attempt=attempt, max_polls=self.max_polls, done=operation.done)

            if operation.error:
                raise ProviderError(f"Veo API error: {_format_provider_error(operation.error)}")
            if operation.done:
                log.info("video_operation_finished", attempts=attempt)
                return operation.response

            self.registry.set_progress(job_id, polling_progress(attempt, self.max_polls))

        raise GenerationTimeoutError(
            "Video generation timeout - operation took too long",
            {"operation": operation_name, "polls": self.max_polls},
        )

    async def _complete_with_placeholder(self, job: Job, error: Exception, log) -> None:
        reason = describe_failure(error)
        self.registry.mark_failed(job.id, reason)
        if isinstance(error, PipelineError):
            error.log_error(job_id=job.id)
        else:
            log.error("video_generation_failed", error=reason, exc_type=type(error).__name__, exc_info=True)

        try:
            path = await write_placeholder(self.artifact_dir, job.id, job.prompt)
        except Exception as e:
            # No playable file exists, so the job stays failed
            self.registry.mark_failed(job.id, f"{reason}; placeholder could not be written: {describe_failure(e)}")
            raise

        self.registry.mark_completed(job.id, str(path), used_fallback=True)
        log.warning("video_job_completed_with_placeholder", error=reason, path=str(path))

        await self._persist_remote(job, path, log)

    async def _persist_remote(self, job: Job, path: Path, log) -> None:
        """Upload to durable storage; failure leaves the local path as the only copy."""
        if self.artifact_store is None:
            log.info("artifact_upload_skipped", reason="no durable storage configured")
            return

        namespace = job.options.project_id or "default"
        try:
            stored = await self.artifact_store.upload(str(path), namespace)
        except Exception as e:
            log.error("artifact_upload_failed", error=str(e), exc_type=type(e).__name__)
            self.registry.record_upload(job.id, None, None)
            return

        self.registry.record_upload(job.id, stored.key, stored.signed_url)
        log.info("artifact_uploaded", key=stored.key)


def _format_provider_error(error: Any) -> str:
    if isinstance(error, (dict, list)):
        return json.dumps(error)
    return str(error)


def create_video_job_orchestrator(
    registry: JobRegistry,
    provider: GenerationProvider,
    token_provider: AccessTokenProvider,
    artifact_store: Optional[ArtifactStore] = None,
) -> VideoJobOrchestrator:
    """
    Factory function to create an orchestrator from settings.
    """
    return VideoJobOrchestrator(
        registry=registry,
        provider=provider,
        token_provider=token_provider,
        artifact_store=artifact_store,
        upload_dir=settings.UPLOAD_DIR,
        poll_interval=settings.VEO_POLL_INTERVAL_SECONDS,
        max_polls=settings.VEO_MAX_POLLS,
    )
