"""
In-memory document analysis jobs: pending -> completed | failed.

The table is volatile. It lives as long as the server process and is swept
by app.services.janitor; a job id is only meaningful within one server lifetime.
"""
import asyncio
import enum
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

log = logging.getLogger(__name__)


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class JobNotFound(KeyError):
    """Unknown job id. Evicted and never-issued ids look the same."""


@dataclass
class AnalysisJob:
    id: str
    source_path: Path
    original_name: str
    created_at: float
    owner_id: str | None = None
    status: JobStatus = JobStatus.PENDING
    result: dict[str, Any] | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not JobStatus.PENDING

    def age(self, now: float) -> float:
        return now - self.created_at

    def view(self) -> dict[str, Any]:
        """Status payload returned to polling clients."""
        body: dict[str, Any] = {"status": self.status.value, "originalName": self.original_name}
        if self.status is JobStatus.COMPLETED:
            body["data"] = self.result
        elif self.status is JobStatus.FAILED:
            body["error"] = self.error
        return body


class JobRegistry:
    """
    Job id -> AnalysisJob, owned by the application (app.state.jobs).

    Each job has one writer, the completion callback attached by track(), and any
    number of readers. Everything runs on the event loop thread, so no lock is taken.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._jobs: dict[str, AnalysisJob] = {}
        self._tasks: dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def create(self, source_path: str | Path, original_name: str, owner_id: str | None = None) -> AnalysisJob:
        job = AnalysisJob(
            id=uuid.uuid4().hex,
            source_path=Path(source_path),
            original_name=original_name,
            created_at=self.clock(),
            owner_id=owner_id,
        )
        self._jobs[job.id] = job
        log.info("analysis job created: id=%s file=%s", job.id, original_name)
        return job

    def get(self, job_id: str) -> AnalysisJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def complete(self, job_id: str, result: dict[str, Any]) -> bool:
        job = self._pending(job_id)
        if job is None:
            return False
        job.status = JobStatus.COMPLETED
        job.result = result
        log.info("analysis job completed: id=%s questions=%s", job_id, len(result.get("questions") or []))
        return True

    def fail(self, job_id: str, error: str) -> bool:
        job = self._pending(job_id)
        if job is None:
            return False
        job.status = JobStatus.FAILED
        job.error = error or "Analysis failed."
        log.warning("analysis job failed: id=%s error=%s", job_id, job.error)
        return True

    def _pending(self, job_id: str) -> AnalysisJob | None:
        job = self._jobs.get(job_id)
        if job is None:
            # Evicted while the executor was still running; its outcome has nowhere to go.
            log.warning("analysis result discarded for unknown job: id=%s", job_id)
            return None
        if job.is_terminal:
            log.warning("analysis job %s already %s, transition ignored", job_id, job.status.value)
            return None
        return job

    def track(self, job_id: str, future: asyncio.Future) -> None:
        """Makes complete()/fail() the single consumer of the executor's outcome."""
        self._tasks[job_id] = future

        def _on_done(fut: asyncio.Future) -> None:
            self._tasks.pop(job_id, None)
            if fut.cancelled():
                self.fail(job_id, "Analysis was cancelled.")
                return
            exc = fut.exception()
            if exc is not None:
                self.fail(job_id, str(exc) or type(exc).__name__)
            else:
                self.complete(job_id, fut.result())

        future.add_done_callback(_on_done)

    def snapshot(self) -> list[AnalysisJob]:
        return list(self._jobs.values())

    def running(self) -> int:
        return len(self._tasks)

    def evict_older_than(self, max_age: float, now: float | None = None) -> list[AnalysisJob]:
        """Removes every job older than max_age, whatever its status, and deletes its source file."""
        now = self.clock() if now is None else now
        evicted = []
        for job_id, job in list(self._jobs.items()):
            if job.age(now) <= max_age:
                continue
            del self._jobs[job_id]
            _remove_quietly(job.source_path)
            evicted.append(job)
            log.info("analysis job evicted: id=%s status=%s", job_id, job.status.value)
        return evicted


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.warning("could not delete %s: %s", path, e)
