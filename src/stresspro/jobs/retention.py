"""Retention sweeper that evicts old terminal jobs from the store."""

import asyncio
import contextlib
import logging
import os
import time

from stresspro.jobs.base import JobStore

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Periodically evicts finished jobs older than the retention window.

    RUNNING jobs are never evicted. Age is measured from ``Job.finished_at``.

    Args:
        store: The job store to sweep.
        retention_seconds: How long terminal jobs are kept. Default from
            ``STRESSPRO_JOB_RETENTION_SECONDS`` (3600).
        interval_seconds: Seconds between sweeps. Default from
            ``STRESSPRO_SWEEP_INTERVAL_SECONDS`` (60).

    Example:
        ```python
        sweeper = RetentionSweeper(store, retention_seconds=600)
        sweeper.start()
        ...
        await sweeper.stop()
        ```
    """

    def __init__(
        self,
        store: JobStore,
        retention_seconds: float | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        self._store = store
        self._retention = (
            retention_seconds
            if retention_seconds is not None
            else float(os.getenv("STRESSPRO_JOB_RETENTION_SECONDS", "3600"))
        )
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else float(os.getenv("STRESSPRO_SWEEP_INTERVAL_SECONDS", "60"))
        )
        if self._retention < 0:
            raise ValueError("retention_seconds must be non-negative")
        if self._interval <= 0:
            raise ValueError("interval_seconds must be positive")

        self._task: asyncio.Task[None] | None = None
        self._evicted_total = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None

    @property
    def evicted_total(self) -> int:
        return self._evicted_total

    def sweep(self, now: float | None = None) -> int:
        """Evict terminal jobs that finished more than the retention window ago.

        Args:
            now: Current wall-clock time, defaults to ``time.time()``.

        Returns:
            Number of jobs evicted.
        """
        now = time.time() if now is None else now
        cutoff = now - self._retention
        expired = [
            job.id
            for job in self._store.jobs()
            if job.status.is_terminal
            and job.finished_at is not None
            and job.finished_at <= cutoff
        ]
        evicted = self._store.evict(expired)
        if evicted:
            self._evicted_total += evicted
            logger.info(f"Evicted {evicted} expired job(s), {len(self._store)} remaining")
        return evicted

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Error in retention sweep")

    def start(self) -> None:
        """Start sweeping in the background. Retention 0 keeps jobs forever."""
        if self._task is not None:
            return
        if self._retention == 0:
            logger.info("Job retention disabled, finished jobs are kept")
            return

        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(
            f"Retention sweeper started (retention {self._retention:.0f}s, "
            f"interval {self._interval:.0f}s)"
        )

    async def stop(self) -> None:
        """Stop the background sweep."""
        if self._task is None:
            return

        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Retention sweeper stopped")
