"""
Tests for StatusReporter
"""

from datetime import timedelta

import pytest

from pipeline.error_handler import JobNotFoundError, JobNotReadyError
from pipeline.models import GenerationOptions, JobStatus
from pipeline.status_reporter import StatusReporter
from tests.fakes import FakeArtifactStore


def completed_job(registry, key="videos/default/job.mp4", quality="standard"):
    job = registry.create("prompt", GenerationOptions(quality=quality))
    registry.mark_completed(job.id, "/uploads/videos/job.mp4")
    if key:
        registry.record_upload(job.id, key, "https://signed.example/stale")
    return job


class TestGetStatus:

    @pytest.mark.asyncio
    async def test_unknown_job(self, registry):
        with pytest.raises(JobNotFoundError):
            await StatusReporter(registry).get_status("job_missing")

    @pytest.mark.asyncio
    async def test_remaining_time_counts_down(self, registry):
        job = registry.create("prompt", GenerationOptions(quality="fast"))
        reporter = StatusReporter(registry)

        view = await reporter.get_status(job.id, now=job.start_time + timedelta(seconds=10))
        assert view.estimated_time_remaining == 20
        assert view.status == JobStatus.QUEUED
        assert view.progress == 0

        view = await reporter.get_status(job.id, now=job.start_time + timedelta(seconds=100))
        assert view.estimated_time_remaining == 0

    @pytest.mark.asyncio
    async def test_unknown_quality_uses_default_estimate(self, registry):
        job = registry.create("prompt", GenerationOptions(quality="ultra"))
        view = await StatusReporter(registry).get_status(job.id, now=job.start_time)
        assert view.estimated_time_remaining == 60

    @pytest.mark.asyncio
    async def test_repeated_query_of_running_job_is_stable(self, registry):
        job = registry.create("prompt")
        registry.mark_processing(job.id, 40)
        reporter = StatusReporter(registry, FakeArtifactStore())
        now = job.start_time + timedelta(seconds=5)

        first = await reporter.get_status(job.id, now=now)
        second = await reporter.get_status(job.id, now=now)

        assert first == second
        assert (second.status, second.progress) == (JobStatus.PROCESSING, 40)

    @pytest.mark.asyncio
    async def test_repeated_query_of_completed_job_is_stable(self, registry):
        job = completed_job(registry)
        reporter = StatusReporter(registry, FakeArtifactStore())

        first = await reporter.get_status(job.id)
        second = await reporter.get_status(job.id)

        assert (first.status, first.progress) == (second.status, second.progress) == (JobStatus.COMPLETED, 100)
        assert first.local_path == second.local_path
        assert first.error == second.error is None

    @pytest.mark.asyncio
    async def test_fresh_signed_url_on_every_call(self, registry):
        job = completed_job(registry)
        store = FakeArtifactStore()
        reporter = StatusReporter(registry, store, signed_url_ttl=86400)

        first = await reporter.get_status(job.id)
        second = await reporter.get_status(job.id)

        assert first.artifact_url == "https://signed.example/videos/default/job.mp4?sig=1"
        assert second.artifact_url == "https://signed.example/videos/default/job.mp4?sig=2"
        assert store.sign_calls == [("videos/default/job.mp4", 86400)] * 2

    @pytest.mark.asyncio
    async def test_signing_failure_degrades_to_no_url(self, registry):
        job = completed_job(registry)
        reporter = StatusReporter(registry, FakeArtifactStore(fail_sign=True))

        view = await reporter.get_status(job.id)

        assert view.status == JobStatus.COMPLETED
        assert view.artifact_url is None
        assert view.local_path == "/uploads/videos/job.mp4"

    @pytest.mark.asyncio
    async def test_completed_without_key_returns_stored_url(self, registry):
        job = completed_job(registry, key=None)
        store = FakeArtifactStore()

        view = await StatusReporter(registry, store).get_status(job.id)

        assert view.artifact_url is None
        assert store.sign_calls == []

    @pytest.mark.asyncio
    async def test_fallback_fields_are_reported(self, registry):
        job = registry.create("prompt")
        registry.mark_failed(job.id, "Veo API error: quota exceeded")
        registry.mark_completed(job.id, "/uploads/videos/job.mp4", used_fallback=True)

        view = await StatusReporter(registry).get_status(job.id)

        assert view.status == JobStatus.COMPLETED
        assert view.progress == 100
        assert view.error == "Veo API error: quota exceeded"
        assert view.used_fallback


class TestGetArtifactLocation:

    @pytest.mark.asyncio
    async def test_unknown_job(self, registry):
        with pytest.raises(JobNotFoundError):
            await StatusReporter(registry).get_artifact_location("job_missing")

    @pytest.mark.asyncio
    async def test_not_ready(self, registry):
        job = registry.create("prompt")
        registry.mark_processing(job.id, 10)

        with pytest.raises(JobNotReadyError) as exc_info:
            await StatusReporter(registry).get_artifact_location(job.id)
        assert exc_info.value.details["status"] == "processing"

    @pytest.mark.asyncio
    async def test_prefers_signed_url(self, registry):
        job = completed_job(registry)
        location = await StatusReporter(registry, FakeArtifactStore()).get_artifact_location(job.id)
        assert location.startswith("https://signed.example/videos/default/job.mp4")

    @pytest.mark.asyncio
    async def test_local_path_when_signing_fails(self, registry):
        job = completed_job(registry)
        reporter = StatusReporter(registry, FakeArtifactStore(fail_sign=True))
        assert await reporter.get_artifact_location(job.id) == "/uploads/videos/job.mp4"

    @pytest.mark.asyncio
    async def test_local_path_without_durable_storage(self, registry):
        job = completed_job(registry, key=None)
        assert await StatusReporter(registry).get_artifact_location(job.id) == "/uploads/videos/job.mp4"
