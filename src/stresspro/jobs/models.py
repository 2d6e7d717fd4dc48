"""Job records and the incremental poll protocol.

A :class:`Job` is mutated from two places only: the batch scheduler
(results, progress, status) and :meth:`Job.poll` (delivery cursor). Both
run as non-yielding steps on the event loop, so no locking is required.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from stresspro.engine.models import JobSummary, LoadProfile, RequestResult


class JobNotFoundError(LookupError):
    """Raised when a job id is not present in the store."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class JobStatus(str, Enum):
    """Lifecycle state of a job.

    Attributes:
        RUNNING: The scheduler is issuing waves.
        COMPLETED: Every iteration has a result.
        FAILED: The scheduler itself raised; results up to that point are kept.
        CANCELLED: The job was cancelled before finishing.
    """

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.RUNNING


@dataclass(frozen=True, slots=True)
class PollResult:
    """Slice of a job handed to a poller.

    Attributes:
        status: Job status at poll time.
        progress: Number of iterations with a result.
        total: Requested iteration count.
        new_results: Results not returned by any earlier poll.
        error: Cause of a FAILED job.
        all_results: Full result list, only once COMPLETED.
        summary: Aggregate statistics, only once terminal.
    """

    status: JobStatus
    progress: int
    total: int
    new_results: list[RequestResult]
    error: str | None = None
    all_results: list[RequestResult] | None = None
    summary: JobSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status.value,
            "progress": self.progress,
            "total": self.total,
            "newResults": [r.to_dict() for r in self.new_results],
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.all_results is not None:
            payload["allResults"] = [r.to_dict() for r in self.all_results]
        if self.summary is not None:
            payload["summary"] = self.summary.to_dict()
        return payload


@dataclass
class Job:
    """A load test run and the state it accumulates.

    Results are appended in wave-settlement order, not sorted by id.
    Consumers that need iteration order should sort by ``RequestResult.id``.
    """

    id: str
    profile: LoadProfile
    status: JobStatus = JobStatus.RUNNING
    results: list[RequestResult] = field(default_factory=list)
    progress: int = 0
    delivery_cursor: int = 0
    error: str | None = None
    peak_in_flight: int = 0
    cancel_requested: bool = False
    created_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    def record_wave(self, wave_results: list[RequestResult]) -> None:
        """Append a settled wave and advance progress in the same step."""
        if self.status.is_terminal:
            raise RuntimeError(f"job {self.id} is already {self.status.value}")
        self.results.extend(wave_results)
        self.progress += len(wave_results)

    def finish(self, status: JobStatus, error: str | None = None) -> None:
        """Move the job into a terminal state. Later calls are ignored."""
        if self.status.is_terminal:
            return
        if not status.is_terminal:
            raise ValueError("finish() requires a terminal status")
        self.status = status
        self.error = error
        self.finished_at = time.time()

    def poll(self) -> PollResult:
        """Return results not yet delivered and advance the delivery cursor."""
        new_results = self.results[self.delivery_cursor :]
        self.delivery_cursor = len(self.results)
        return PollResult(
            status=self.status,
            progress=self.progress,
            total=self.profile.iterations,
            new_results=new_results,
            error=self.error,
            all_results=list(self.results) if self.status is JobStatus.COMPLETED else None,
            summary=JobSummary.from_results(self.results) if self.status.is_terminal else None,
        )
