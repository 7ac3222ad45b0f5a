"""
In-memory job store for analysis jobs.

Single-process only: records live in a dict and are lost on restart.
Each job id has exactly one writer (its pipeline task); pollers only read.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.ERROR)


# Allowed forward moves; a terminal status has none
_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PENDING, JobStatus.PROCESSING, JobStatus.ERROR},
    JobStatus.PROCESSING: {JobStatus.PROCESSING, JobStatus.COMPLETE, JobStatus.ERROR},
    JobStatus.COMPLETE: set(),
    JobStatus.ERROR: set(),
}

_UPDATABLE = {"status", "progress", "stage", "message", "result", "error"}


class JobRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    stage: str = "initializing"
    message: str = "Initializing analysis..."
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    created_at: float
    updated_at: float

    def to_json(self) -> dict:
        return {
            "job_id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "stage": self.stage,
            "message": self.message,
            "result": self.result,
            "error": self.error,
        }


class JobStore:
    def __init__(self, retention_seconds: int = 60 * 60, clock: Callable[[], float] = time.time):
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._jobs: dict[str, JobRecord] = {}

    def create(self, job_id: str) -> JobRecord:
        now = self._clock()
        record = JobRecord(id=job_id, created_at=now, updated_at=now)
        self._jobs[job_id] = record
        logger.debug(f"[job-store] Created job {job_id}")
        return record

    def get(self, job_id: str) -> Optional[JobRecord]:
        return self._jobs.get(job_id)

    def update(self, job_id: str, **changes) -> Optional[JobRecord]:
        """
        Merge changes into a job and bump updated_at.

        Unknown ids are a no-op. Terminal jobs are never modified. Progress is
        clamped to 0-100 and never lowered; a status change that is not a
        forward transition is ignored along with the rest of the update.
        """
        job = self._jobs.get(job_id)
        if job is None:
            return None
        if job.status.terminal:
            logger.debug(f"[job-store] Ignoring update to {job.status.value} job {job_id}")
            return job

        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise TypeError(f"Cannot update job fields: {', '.join(sorted(unknown))}")

        if "status" in changes:
            status = JobStatus(changes["status"])
            if status not in _TRANSITIONS[job.status]:
                logger.warning(f"[job-store] Rejected transition {job.status.value} -> {status.value} for {job_id}")
                return job
            changes["status"] = status

        if "progress" in changes:
            progress = max(0, min(100, int(changes["progress"])))
            changes["progress"] = max(progress, job.progress)

        updated = job.model_copy(update={**changes, "updated_at": self._clock()})
        self._jobs[job_id] = updated
        return updated

    def delete(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)

    def sweep(self) -> int:
        """Drop every job not updated within the retention window, whatever its status."""
        cutoff = self._clock() - self.retention_seconds
        stale = [job_id for job_id, job in self._jobs.items() if job.updated_at < cutoff]
        for job_id in stale:
            del self._jobs[job_id]
        if stale:
            logger.info(f"[job-store] Swept {len(stale)} job(s), {len(self._jobs)} remaining")
        return len(stale)

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs


async def run_periodic(name: str, sweep: Callable[[], int], interval: float):
    """Call sweep() every interval seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            sweep()
        except Exception as e:
            logger.error(f"[{name}] Sweep failed: {e}")


def start_sweeper(name: str, sweep: Callable[[], int], interval: float) -> asyncio.Task:
    """Start a sweeper background task. Call from server lifespan and cancel on shutdown."""
    return asyncio.create_task(run_periodic(name, sweep, interval), name=f"{name}-sweeper")
