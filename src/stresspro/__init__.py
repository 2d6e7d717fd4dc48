"""StressPro HTTP load-generation engine.

Turns a declarative load profile into concurrency-bounded waves of HTTP
requests and exposes each job's progress to polling callers.
"""

from stresspro.engine import (
    BatchScheduler,
    LoadProfile,
    ProfileValidationError,
    RequestExecutor,
    RequestOutcome,
    RequestResult,
)
from stresspro.jobs import (
    InMemoryJobStore,
    Job,
    JobNotFoundError,
    JobStatus,
    JobStore,
    PollResult,
)
from stresspro.manager import JobManager

__version__ = "0.1.0"

__all__ = [
    "BatchScheduler",
    "InMemoryJobStore",
    "Job",
    "JobManager",
    "JobNotFoundError",
    "JobStatus",
    "JobStore",
    "LoadProfile",
    "PollResult",
    "ProfileValidationError",
    "RequestExecutor",
    "RequestOutcome",
    "RequestResult",
]
