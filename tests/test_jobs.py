"""Tests for the in-memory job registry."""

from __future__ import annotations

import pytest

from foreclosure_abstract.config import PipelineSettings
from foreclosure_abstract.exceptions import JobNotFoundError, RegistryFullError
from foreclosure_abstract.jobs import JobRegistry
from foreclosure_abstract.models import JobStage, JobStatus


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> JobRegistry:
    return JobRegistry(retention=3600, max_jobs=3, clock=clock)


class TestCreateAndGet:
    def test_new_job_is_running(self, registry: JobRegistry) -> None:
        job = registry.create(["funding_pkg.pdf"])
        assert job.status == JobStatus.RUNNING
        assert job.stage == JobStage.UPLOADING
        assert job.progress == 0
        assert job.file_names == ["funding_pkg.pdf"]
        assert registry.get(job.id) is job
        assert job.id in registry

    def test_ids_are_unique(self, registry: JobRegistry) -> None:
        assert registry.create([]).id != registry.create([]).id

    def test_unknown_id(self, registry: JobRegistry) -> None:
        with pytest.raises(JobNotFoundError) as exc:
            registry.get("nope")
        assert exc.value.code == "JOB_NOT_FOUND"

    def test_capacity(self, registry: JobRegistry) -> None:
        for _ in range(3):
            registry.create([])
        with pytest.raises(RegistryFullError):
            registry.create([])

    def test_from_settings(self) -> None:
        registry = JobRegistry.from_settings(PipelineSettings(job_retention=5, max_jobs=7))
        assert registry.retention == 5
        assert registry.max_jobs == 7


class TestSweep:
    def test_expired_jobs_removed(self, registry: JobRegistry, clock: FakeClock) -> None:
        old = registry.create([])
        clock.now += 1800
        young = registry.create([])
        clock.now += 1801

        assert registry.sweep() == 1
        assert old.id not in registry
        assert young.id in registry

    def test_swept_running_job_is_cancelled(self, registry: JobRegistry, clock: FakeClock) -> None:
        job = registry.create([])
        clock.now += 3601
        registry.sweep()
        assert job.cancelled

    def test_create_sweeps_first(self, registry: JobRegistry, clock: FakeClock) -> None:
        for _ in range(3):
            registry.create([])
        clock.now += 3601
        registry.create([])
        assert len(registry) == 1
