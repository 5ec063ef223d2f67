"""
Tests for VideoJobOrchestrator

Tests cover:
- Immediate and long-running provider results
- Fallback to a placeholder video on every failure kind
- Bounded polling and progress reporting
- Durable upload, including upload failure
- Configuration errors surfaced at submission
"""

import asyncio
from pathlib import Path

import pytest

from pipeline.artifacts import placeholder_bytes
from pipeline.error_handler import ConfigurationError, ProviderError
from pipeline.models import CaptionSettings, GenerationOptions, JobStatus, OperationSnapshot
from pipeline.orchestrator import JobTaskSupervisor, build_provider_prompt, polling_progress
from tests.fakes import (
    VIDEO_BYTES,
    FakeArtifactStore,
    FakeProvider,
    FakeTokenProvider,
    predictions_response,
    videos_response,
)

PENDING = OperationSnapshot(done=False, name="operations/op-1")


async def run_job(orchestrator, prompt="A lighthouse in a storm", options=None):
    submitted = await orchestrator.submit_job(prompt, options)
    await orchestrator.supervisor.wait(submitted.job_id, timeout=5)
    return orchestrator.registry.get(submitted.job_id)


class TestPromptAndProgress:

    def test_captions_enhance_prompt(self):
        options = GenerationOptions(captions=CaptionSettings(enabled=True, type="bold", fontSize="large"))
        assert build_provider_prompt("A city at night", options) == (
            "A city at night. Generate with bold style captions/subtitles, large font size."
        )

    def test_disabled_captions_leave_prompt(self):
        options = GenerationOptions(captions=CaptionSettings(enabled=False))
        assert build_provider_prompt("A city at night", options) == "A city at night"

    @pytest.mark.parametrize(
        "attempt,expected",
        [(1, 20), (2, 21), (60, 55), (119, 89), (120, 90), (500, 90)],
    )
    def test_polling_progress(self, attempt, expected):
        assert polling_progress(attempt, 120) == expected


class TestSubmitJob:

    @pytest.mark.asyncio
    async def test_returns_queued_job_immediately(self, make_orchestrator):
        release = asyncio.Event()

        class BlockingProvider(FakeProvider):
            async def submit(self, prompt, duration_seconds, access_token):
                await release.wait()
                return await super().submit(prompt, duration_seconds, access_token)

        orchestrator = make_orchestrator(BlockingProvider(OperationSnapshot(done=True, response=videos_response())))
        submitted = await orchestrator.submit_job("A red kite", GenerationOptions(quality="high"))

        assert submitted.status == JobStatus.QUEUED
        assert submitted.estimated_time == 120
        assert submitted.prompt == "A red kite"
        assert orchestrator.registry.get(submitted.job_id).status == JobStatus.QUEUED

        release.set()
        await orchestrator.supervisor.wait(submitted.job_id, timeout=5)
        assert orchestrator.registry.get(submitted.job_id).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_missing_credentials_registers_nothing(self, make_orchestrator, registry):
        orchestrator = make_orchestrator(FakeProvider(), tokens=FakeTokenProvider(configured=False))

        with pytest.raises(ConfigurationError):
            await orchestrator.submit_job("A red kite")

        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_unknown_quality_estimate(self, make_orchestrator):
        orchestrator = make_orchestrator(FakeProvider(OperationSnapshot(done=True, response=videos_response())))
        submitted = await orchestrator.submit_job("A red kite", GenerationOptions(quality="ultra"))
        assert submitted.estimated_time == 60
        await orchestrator.supervisor.wait(submitted.job_id, timeout=5)


class TestSuccessfulGeneration:

    @pytest.mark.asyncio
    async def test_immediate_result(self, make_orchestrator, artifact_store):
        provider = FakeProvider(OperationSnapshot(done=True, response=videos_response()))
        job = await run_job(make_orchestrator(provider))

        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100
        assert job.error is None
        assert not job.used_fallback
        assert Path(job.artifact_local_path).read_bytes() == VIDEO_BYTES
        assert provider.polls == []
        assert job.artifact_remote_key == f"videos/default/{job.id}.mp4"
        assert job.artifact_url.startswith("https://signed.example/")
        assert artifact_store.uploads == [(job.artifact_local_path, "default")]

    @pytest.mark.asyncio
    async def test_long_running_operation(self, make_orchestrator, token_provider):
        done = OperationSnapshot(done=True, name="operations/op-1", response=predictions_response())
        provider = FakeProvider(poll_results=[PENDING, PENDING, done])
        job = await run_job(make_orchestrator(provider))

        assert job.status == JobStatus.COMPLETED
        assert Path(job.artifact_local_path).read_bytes() == VIDEO_BYTES
        assert [name for name, _ in provider.polls] == ["operations/op-1"] * 3
        # A fresh token for the submission and for every poll
        assert token_provider.calls == 4
        assert len({token for _, token in provider.polls}) == 3

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_while_polling(self, make_orchestrator, registry):
        done = OperationSnapshot(done=True, response=videos_response())
        provider = FakeProvider(poll_results=[PENDING] * 10 + [done])
        orchestrator = make_orchestrator(provider, max_polls=20)
        seen = []

        submitted = await orchestrator.submit_job("A red kite")
        provider.on_poll = lambda _: seen.append(registry.get(submitted.job_id).progress)
        await orchestrator.supervisor.wait(submitted.job_id, timeout=5)

        assert seen == sorted(seen)
        assert all(20 <= progress <= 90 for progress in seen)
        assert registry.get(submitted.job_id).progress == 100

    @pytest.mark.asyncio
    async def test_request_parameters_reach_provider(self, make_orchestrator):
        provider = FakeProvider(OperationSnapshot(done=True, response=videos_response()))
        options = GenerationOptions(duration=8, captions=CaptionSettings(enabled=True, type="karaoke", fontSize="small"))
        await run_job(make_orchestrator(provider), "Waves on rocks", options)

        prompt, duration, token = provider.submitted[0]
        assert prompt == "Waves on rocks. Generate with karaoke style captions/subtitles, small font size."
        assert duration == 8
        assert token == "token-1"

    @pytest.mark.asyncio
    async def test_project_namespace_used_for_upload(self, make_orchestrator, artifact_store):
        provider = FakeProvider(OperationSnapshot(done=True, response=videos_response()))
        job = await run_job(make_orchestrator(provider), options=GenerationOptions(project_id="project-42"))

        assert job.artifact_remote_key == f"videos/project-42/{job.id}.mp4"
        assert artifact_store.uploads[0][1] == "project-42"


class TestFallback:

    @pytest.mark.asyncio
    async def test_placeholder_write_failure_leaves_job_failed(self, make_orchestrator, monkeypatch):
        async def disk_full(directory, job_id, prompt):
            raise OSError("No space left on device")

        monkeypatch.setattr("pipeline.orchestrator.write_placeholder", disk_full)
        job = await run_job(make_orchestrator(FakeProvider(RuntimeError("provider down"))))

        assert job.status == JobStatus.FAILED
        assert job.error == (
            "RuntimeError: provider down; "
            "placeholder could not be written: OSError: No space left on device"
        )
        assert job.artifact_local_path is None
        assert not job.used_fallback

    @pytest.mark.asyncio
    async def test_poll_error_falls_back_to_placeholder(self, make_orchestrator):
        failed = OperationSnapshot(done=True, name="operations/op-1", error={"code": 3, "message": "unsafe prompt"})
        job = await run_job(make_orchestrator(FakeProvider(poll_results=[PENDING, failed])))

        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100
        assert job.used_fallback
        assert job.error.startswith("Veo API error:")
        assert "unsafe prompt" in job.error
        assert Path(job.artifact_local_path).read_bytes() == placeholder_bytes()

    @pytest.mark.asyncio
    async def test_polling_is_bounded(self, make_orchestrator):
        provider = FakeProvider(poll_results=[PENDING])
        job = await run_job(make_orchestrator(provider, max_polls=120))

        assert len(provider.polls) == 120
        assert job.status == JobStatus.COMPLETED
        assert job.used_fallback
        assert job.error == "Video generation timeout - operation took too long"

    @pytest.mark.asyncio
    async def test_submission_failure(self, make_orchestrator):
        provider = FakeProvider(ProviderError("Veo API error (429): quota exceeded", status_code=429))
        job = await run_job(make_orchestrator(provider))

        assert job.used_fallback
        assert job.error == "Veo API error (429): quota exceeded"
        assert Path(job.artifact_local_path).read_bytes() == placeholder_bytes()

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, make_orchestrator):
        job = await run_job(make_orchestrator(FakeProvider(RuntimeError("connection reset"))))

        assert job.status == JobStatus.COMPLETED
        assert job.used_fallback
        assert job.error == "RuntimeError: connection reset"

    @pytest.mark.asyncio
    async def test_missing_video_content(self, make_orchestrator):
        provider = FakeProvider(OperationSnapshot(done=True, response={"raiMediaFilteredCount": 1}))
        job = await run_job(make_orchestrator(provider))

        assert job.used_fallback
        assert job.error == "No video content in response"

    @pytest.mark.asyncio
    async def test_no_operation_name(self, make_orchestrator):
        job = await run_job(make_orchestrator(FakeProvider(OperationSnapshot(done=False))))

        assert job.used_fallback
        assert "operation name" in job.error

    @pytest.mark.asyncio
    async def test_placeholder_is_uploaded(self, make_orchestrator, artifact_store):
        job = await run_job(make_orchestrator(FakeProvider(RuntimeError("boom"))))

        assert artifact_store.uploads == [(job.artifact_local_path, "default")]
        assert job.artifact_remote_key == f"videos/default/{job.id}.mp4"
        assert job.artifact_local_path is not None


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_failure_is_not_fatal(self, make_orchestrator):
        provider = FakeProvider(OperationSnapshot(done=True, response=videos_response()))
        job = await run_job(make_orchestrator(provider, store=FakeArtifactStore(fail_upload=True)))

        assert job.status == JobStatus.COMPLETED
        assert not job.used_fallback
        assert job.error is None
        assert job.artifact_remote_key is None
        assert job.artifact_url is None
        assert Path(job.artifact_local_path).read_bytes() == VIDEO_BYTES

    @pytest.mark.asyncio
    async def test_without_durable_storage(self, make_orchestrator):
        provider = FakeProvider(OperationSnapshot(done=True, response=videos_response()))
        job = await run_job(make_orchestrator(provider, store=None))

        assert job.status == JobStatus.COMPLETED
        assert job.artifact_url is None
        assert job.artifact_remote_key is None
        assert Path(job.artifact_local_path).exists()


class TestJobTaskSupervisor:

    @pytest.mark.asyncio
    async def test_escaped_exception_is_contained(self):
        supervisor = JobTaskSupervisor()

        async def explode():
            raise RuntimeError("disk full")

        task = supervisor.spawn("job_1", explode())
        await supervisor.wait("job_1", timeout=5)

        assert task.done()
        assert isinstance(task.exception(), RuntimeError)
        assert len(supervisor) == 0

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_jobs(self):
        supervisor = JobTaskSupervisor()
        task = supervisor.spawn("job_1", asyncio.sleep(60))
        await asyncio.sleep(0)

        await supervisor.shutdown()

        assert task.cancelled()
        assert len(supervisor) == 0
