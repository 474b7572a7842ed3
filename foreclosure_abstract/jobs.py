"""
In-memory job registry with retention and a capacity bound.

The registry is an explicit object handed to whoever needs it (the pipeline,
the API). Jobs older than the retention window are swept on every create
and by a periodic sweeper coroutine.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable

from .config import PipelineSettings
from .exceptions import JobNotFoundError, RegistryFullError
from .models import Job

logger = logging.getLogger(__name__)


class JobRegistry:
    def __init__(
        self,
        retention: float = 3600,
        max_jobs: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.retention = retention
        self.max_jobs = max_jobs
        self._clock = clock
        self._jobs: dict[str, Job] = {}

    @classmethod
    def from_settings(cls, settings: PipelineSettings, clock: Callable[[], float] = time.time) -> "JobRegistry":
        return cls(retention=settings.job_retention, max_jobs=settings.max_jobs, clock=clock)

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def create(self, file_names: list[str]) -> Job:
        """Register a new running job, sweeping expired ones first."""
        self.sweep()
        if len(self._jobs) >= self.max_jobs:
            raise RegistryFullError(self.max_jobs)
        job = Job(id=str(uuid.uuid4()), file_names=list(file_names), created_at=self._clock())
        self._jobs[job.id] = job
        logger.info("Job %s created for %d file(s)", job.id, len(file_names))
        return job

    def add(self, job: Job) -> Job:
        """Register an already-built job (restores, tests)."""
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def sweep(self) -> int:
        """Drop jobs older than the retention window. Returns how many."""
        cutoff = self._clock() - self.retention
        expired = [job for job in self._jobs.values() if job.created_at < cutoff]
        for job in expired:
            # A still-running job stops at its next cancellation check.
            job.cancelled = True
            del self._jobs[job.id]
        if expired:
            logger.info("Swept %d expired job(s)", len(expired))
        return len(expired)

    async def run_sweeper(self, interval: float = 1800) -> None:
        """Sweep forever every ``interval`` seconds (cancel the task to stop)."""
        while True:
            await asyncio.sleep(interval)
            self.sweep()
