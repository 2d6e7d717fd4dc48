"""Load engine: request executor, batch scheduler and domain models."""

from stresspro.engine.executor import RequestExecutor, bust_cache, build_headers
from stresspro.engine.models import (
    ConnectionConfig,
    JobSummary,
    LoadProfile,
    ProfileValidationError,
    RequestOutcome,
    RequestResult,
)
from stresspro.engine.scheduler import BatchScheduler, wave_bounds

__all__ = [
    "BatchScheduler",
    "ConnectionConfig",
    "JobSummary",
    "LoadProfile",
    "ProfileValidationError",
    "RequestExecutor",
    "RequestOutcome",
    "RequestResult",
    "build_headers",
    "bust_cache",
    "wave_bounds",
]
