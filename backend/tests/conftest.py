"""
Shared fixtures for the job engine tests.
"""

import pytest

from pipeline.job_registry import JobRegistry
from pipeline.orchestrator import VideoJobOrchestrator
from tests.fakes import FakeArtifactStore, FakeTokenProvider


@pytest.fixture
def registry():
    return JobRegistry()


@pytest.fixture
def token_provider():
    return FakeTokenProvider()


@pytest.fixture
def artifact_store():
    return FakeArtifactStore()


@pytest.fixture
def make_orchestrator(registry, token_provider, artifact_store, tmp_path):
    """Build an orchestrator that polls without sleeping."""

    def _make(provider, store=artifact_store, max_polls=120, tokens=token_provider):
        return VideoJobOrchestrator(
            registry=registry,
            provider=provider,
            token_provider=tokens,
            artifact_store=store,
            upload_dir=str(tmp_path),
            poll_interval=0,
            max_polls=max_polls,
        )

    return _make
