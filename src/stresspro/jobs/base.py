"""Base protocol for job storage backends."""

from collections.abc import Iterable, Iterator
from typing import Protocol

from stresspro.engine.models import LoadProfile
from stresspro.jobs.models import Job


class JobStore(Protocol):
    """Protocol for job storage backends.

    The scheduler and the poll protocol only depend on this interface, so a
    different backing store can replace the in-memory table.
    """

    def create(self, profile: LoadProfile) -> Job:
        """Create a RUNNING job for the profile under a fresh id."""
        ...

    def get(self, job_id: str) -> Job:
        """Return the job, raising JobNotFoundError if it is unknown."""
        ...

    def jobs(self) -> Iterator[Job]:
        """Iterate over every stored job."""
        ...

    def evict(self, job_ids: Iterable[str]) -> int:
        """Remove jobs by id. Returns count removed."""
        ...

    def __contains__(self, job_id: object) -> bool: ...

    def __len__(self) -> int: ...
