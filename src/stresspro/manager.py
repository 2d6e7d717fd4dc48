"""Job manager: submits, polls and cancels load jobs.

The manager owns the job store, the batch scheduler and the asyncio tasks
running each job. Submission returns as soon as the job record exists; the
scheduler runs in the background.
"""

from __future__ import annotations

import asyncio
import logging

from stresspro.engine.models import LoadProfile
from stresspro.engine.scheduler import BatchScheduler
from stresspro.jobs.base import JobStore
from stresspro.jobs.memory import InMemoryJobStore
from stresspro.jobs.models import Job, JobStatus, PollResult

logger = logging.getLogger(__name__)


class JobManager:
    """Coordinates job creation, background execution and incremental polling.

    Args:
        store: Job storage backend (default: InMemoryJobStore).
        scheduler: Scheduler used to run jobs (default: BatchScheduler()).

    Example:
        ```python
        manager = JobManager()
        job_id = manager.submit(profile)
        while True:
            poll = manager.poll(job_id)
            handle(poll.new_results)
            if poll.status.is_terminal:
                break
            await asyncio.sleep(0.5)
        ```
    """

    def __init__(
        self,
        store: JobStore | None = None,
        scheduler: BatchScheduler | None = None,
    ) -> None:
        self._store = store if store is not None else InMemoryJobStore()
        self._scheduler = scheduler or BatchScheduler()
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def running_count(self) -> int:
        """Number of jobs whose scheduler task has not finished."""
        return len(self._tasks)

    def submit(self, profile: LoadProfile) -> str:
        """Create a RUNNING job and start its scheduler without awaiting it.

        Must be called from within a running event loop.

        Returns:
            The new job id.
        """
        job = self._store.create(profile)
        logger.info(
            f"[Job {job.id}] Starting: {profile.method} {profile.target_url} "
            f"({profile.iterations} iter, concurrency {profile.concurrency})"
        )
        task = asyncio.create_task(self._scheduler.run(job), name=f"stresspro-job-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(lambda t, job=job: self._on_task_done(job, t))
        return job.id

    def _on_task_done(self, job: Job, task: asyncio.Task[None]) -> None:
        self._tasks.pop(job.id, None)
        # A task cancelled before its first step never ran the scheduler
        if task.cancelled():
            job.finish(JobStatus.CANCELLED)

    def get(self, job_id: str) -> Job:
        """Return the job record. Raises JobNotFoundError for unknown ids."""
        return self._store.get(job_id)

    def poll(self, job_id: str) -> PollResult:
        """Return results delivered since the previous poll.

        Raises:
            JobNotFoundError: If the id is unknown. No state is touched.
        """
        return self._store.get(job_id).poll()

    def cancel(self, job_id: str) -> Job:
        """Request cancellation of a running job.

        The scheduler stops before its next wave and the in-flight wave is
        abandoned. Terminal jobs are returned unchanged.

        Raises:
            JobNotFoundError: If the id is unknown.
        """
        job = self._store.get(job_id)
        if job.status.is_terminal:
            return job

        job.cancel_requested = True
        task = self._tasks.get(job_id)
        if task is not None:
            task.cancel()
        logger.info(f"[Job {job_id}] Cancellation requested.")
        return job

    async def wait(self, job_id: str) -> Job:
        """Wait until the job reaches a terminal state and return it."""
        job = self._store.get(job_id)
        task = self._tasks.get(job_id)
        if task is not None:
            # asyncio.wait does not raise when the job task was cancelled
            await asyncio.wait({task})
        return job

    async def shutdown(self) -> None:
        """Cancel every running job and wait for their tasks to finish."""
        tasks = list(self._tasks.values())
        for job_id in list(self._tasks):
            self.cancel(job_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} running job(s) on shutdown")
