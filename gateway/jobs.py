from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from common.schemas import ProgressEvent

logger = logging.getLogger(__name__)


@dataclass
class Job:
    job_id: str
    file_name: str
    upload_path: str | None = None
    stage: str = "queued"
    message: str = ""
    percent_complete: float = 0.0
    started_at: float = field(default_factory=time.monotonic)

    def record(self, event: ProgressEvent) -> None:
        self.stage = event.stage.value
        self.message = event.message
        self.percent_complete = event.percent_complete

    def snapshot(self) -> dict:
        return {
            "id": self.job_id,
            "fileName": self.file_name,
            "stage": self.stage,
            "message": self.message,
            "percentComplete": self.percent_complete,
            "elapsedSeconds": round(time.monotonic() - self.started_at, 1),
        }


class JobManager:
    """Tracks transcriptions in flight, their latest progress, and caps how many run at once."""

    def __init__(self, max_jobs: int = 10) -> None:
        self._max = max_jobs
        self._jobs: dict[str, Job] = {}
        self._lock = asyncio.Lock()

    async def create(self, job_id: str, file_name: str, **kwargs) -> Job:
        async with self._lock:
            if len(self._jobs) >= self._max:
                raise RuntimeError(f"Max jobs ({self._max}) reached")
            if job_id in self._jobs:
                raise RuntimeError(f"Job {job_id} already exists")
            job = Job(job_id=job_id, file_name=file_name, **kwargs)
            self._jobs[job_id] = job
            logger.info("Job created: %s for %s (%d active)", job_id, file_name, len(self._jobs))
            return job

    async def remove(self, job_id: str) -> None:
        async with self._lock:
            job = self._jobs.pop(job_id, None)
            if job is not None:
                logger.info(
                    "Job removed: %s after %.1fs at %s (%d active)",
                    job_id, time.monotonic() - job.started_at, job.stage, len(self._jobs),
                )

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def snapshot(self) -> list[dict]:
        return [job.snapshot() for job in self._jobs.values()]

    @property
    def active_count(self) -> int:
        return len(self._jobs)
