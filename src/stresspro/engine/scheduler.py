"""Batch scheduler: turns a load profile into bounded-concurrency waves.

This module drives the RequestExecutor using:
- asyncio.TaskGroup for structured concurrency within a wave
- InFlightLimiter to cap and measure requests in flight
- One pooled httpx.AsyncClient per job

Waves are strictly sequential: wave k+1 starts only after every request in
wave k has settled, followed by a short fixed pause. The pause is a throttle
for the event loop and pollers, not a rate limiter.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import httpx

from stresspro.engine.executor import RequestExecutor
from stresspro.engine.models import ConnectionConfig, LoadProfile, RequestResult
from stresspro.jobs.models import Job, JobStatus
from stresspro.patterns.semaphore import InFlightLimiter

logger = logging.getLogger(__name__)

DEFAULT_WAVE_PAUSE_SECONDS = 0.01

ClientFactory = Callable[[LoadProfile], httpx.AsyncClient]


def wave_bounds(iterations: int, batch_size: int) -> list[range]:
    """Partition ``[0, iterations)`` into contiguous waves of at most ``batch_size`` ids."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [
        range(start, min(start + batch_size, iterations))
        for start in range(0, iterations, batch_size)
    ]


def _describe(exc: BaseException) -> str:
    # TaskGroup wraps errors in an ExceptionGroup; report the first leaf
    while isinstance(exc, BaseExceptionGroup) and exc.exceptions:
        exc = exc.exceptions[0]
    return str(exc) or type(exc).__name__


class BatchScheduler:
    """Runs a job's iterations in waves and records the results on the job.

    Args:
        wave_pause_seconds: Pause between waves (default: 10 ms).
        config: Connection pooling configuration for the per-job client.
        client_factory: Builds the client for a job; defaults to a pooled
            httpx.AsyncClient sized to the profile's concurrency.

    Example:
        ```python
        scheduler = BatchScheduler()
        job = store.create(profile)
        await scheduler.run(job)
        assert job.status is JobStatus.COMPLETED
        ```
    """

    def __init__(
        self,
        wave_pause_seconds: float = DEFAULT_WAVE_PAUSE_SECONDS,
        config: ConnectionConfig | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        if wave_pause_seconds < 0:
            raise ValueError("wave_pause_seconds must be non-negative")

        self._wave_pause = wave_pause_seconds
        self._config = config or ConnectionConfig()
        self._client_factory = client_factory or self._default_client

    def _default_client(self, profile: LoadProfile) -> httpx.AsyncClient:
        pool_size = profile.concurrency
        if self._config.max_connections is not None:
            # Requests beyond the cap queue for a slot within their own deadline
            pool_size = min(pool_size, self._config.max_connections)
        limits = httpx.Limits(
            max_connections=pool_size,
            max_keepalive_connections=min(pool_size, self._config.max_keepalive_connections),
            keepalive_expiry=self._config.keepalive_expiry,
        )
        # The executor enforces the per-request deadline itself
        timeout = httpx.Timeout(profile.timeout_ms / 1000)
        return httpx.AsyncClient(limits=limits, timeout=timeout, http2=self._config.http2)

    async def run(self, job: Job) -> None:
        """Execute every wave of the job and leave it in a terminal state.

        Request failures are recorded on individual results. Anything else
        raised here marks the job FAILED. A cancel request seen between waves
        marks it CANCELLED; task cancellation does the same for the in-flight
        wave, whose partial results are dropped, and is re-raised.

        Args:
            job: A RUNNING job.
        """
        profile = job.profile
        limiter = InFlightLimiter(max_in_flight=profile.concurrency)

        try:
            async with self._client_factory(profile) as client:
                executor = RequestExecutor(client)
                waves = wave_bounds(profile.iterations, profile.concurrency)
                for index, wave in enumerate(waves):
                    if job.cancel_requested:
                        break

                    wave_results = await self._run_wave(executor, limiter, wave, profile)
                    job.record_wave(wave_results)
                    job.peak_in_flight = limiter.peak_in_flight
                    logger.debug(
                        f"[Job {job.id}] Wave {index + 1}/{len(waves)} settled "
                        f"({job.progress}/{profile.iterations})"
                    )

                    if index + 1 < len(waves):
                        await asyncio.sleep(self._wave_pause)
        except asyncio.CancelledError:
            job.finish(JobStatus.CANCELLED)
            logger.info(f"[Job {job.id}] Cancelled at {job.progress}/{profile.iterations}.")
            raise
        except Exception as exc:
            job.finish(JobStatus.FAILED, error=_describe(exc))
            logger.exception(f"[Job {job.id}] Failed: {job.error}")
            return

        if job.cancel_requested and job.progress < profile.iterations:
            job.finish(JobStatus.CANCELLED)
            logger.info(f"[Job {job.id}] Cancelled at {job.progress}/{profile.iterations}.")
            return

        job.finish(JobStatus.COMPLETED)
        logger.info(f"[Job {job.id}] Completed.")

    async def _run_wave(
        self,
        executor: RequestExecutor,
        limiter: InFlightLimiter,
        wave: range,
        profile: LoadProfile,
    ) -> list[RequestResult]:
        """Run one wave to completion, collecting results in settlement order."""
        settled: list[RequestResult] = []

        async def fire(request_id: int) -> None:
            async with limiter:
                result = await executor.execute(request_id, profile)
            settled.append(result)

        async with asyncio.TaskGroup() as tg:
            for request_id in wave:
                tg.create_task(fire(request_id))

        return settled
