"""Job records, storage and retention."""

from stresspro.jobs.base import JobStore
from stresspro.jobs.memory import InMemoryJobStore
from stresspro.jobs.models import Job, JobNotFoundError, JobStatus, PollResult
from stresspro.jobs.retention import RetentionSweeper

__all__ = [
    "InMemoryJobStore",
    "Job",
    "JobNotFoundError",
    "JobStatus",
    "JobStore",
    "PollResult",
    "RetentionSweeper",
]
