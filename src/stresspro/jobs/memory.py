"""In-memory job store keyed by random URL-safe ids."""

import logging
import secrets
from collections.abc import Iterable, Iterator

from stresspro.engine.models import LoadProfile
from stresspro.jobs.base import JobStore
from stresspro.jobs.models import Job, JobNotFoundError

logger = logging.getLogger(__name__)

JOB_ID_BYTES = 16


class InMemoryJobStore(JobStore):
    """Process-local job table.

    Job ids carry 128 bits of randomness and are re-drawn on collision, so an
    in-flight job is never silently replaced. Nothing survives a restart.

    Example:
        ```python
        store = InMemoryJobStore()
        job = store.create(profile)
        assert store.get(job.id) is job
        ```
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    def _new_id(self) -> str:
        while True:
            job_id = secrets.token_urlsafe(JOB_ID_BYTES)
            if job_id not in self._jobs:
                return job_id
            logger.warning(f"Job id collision on {job_id}, drawing again")

    def create(self, profile: LoadProfile) -> Job:
        job = Job(id=self._new_id(), profile=profile)
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Job:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id) from None

    def jobs(self) -> Iterator[Job]:
        # Snapshot so callers may evict while iterating
        return iter(list(self._jobs.values()))

    def evict(self, job_ids: Iterable[str]) -> int:
        removed = 0
        for job_id in job_ids:
            if self._jobs.pop(job_id, None) is not None:
                removed += 1
        return removed

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
