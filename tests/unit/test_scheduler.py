"""Unit tests for the BatchScheduler.

Tests cover:
- Wave partitioning
- Result count, id coverage and progress
- Bounded in-flight concurrency and the barrier between waves
- Job-level failure and cancellation
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from unittest.mock import patch

import httpx
import pytest

from stresspro.engine.executor import RequestExecutor
from stresspro.engine.models import ConnectionConfig, LoadProfile, RequestOutcome
from stresspro.engine.scheduler import BatchScheduler, wave_bounds
from stresspro.jobs.models import Job, JobStatus

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


def _scheduler(handler: Handler, wave_pause_seconds: float = 0.0) -> BatchScheduler:
    return BatchScheduler(
        wave_pause_seconds=wave_pause_seconds,
        client_factory=lambda profile: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


async def _ok(request: httpx.Request) -> httpx.Response:
    await asyncio.sleep(0.005)
    return httpx.Response(200)


class TestWaveBounds:
    """Tests for wave partitioning."""

    def test_even_split(self) -> None:
        assert wave_bounds(25, 5) == [
            range(0, 5),
            range(5, 10),
            range(10, 15),
            range(15, 20),
            range(20, 25),
        ]

    def test_last_wave_is_remainder(self) -> None:
        assert wave_bounds(7, 3) == [range(0, 3), range(3, 6), range(6, 7)]

    def test_batch_larger_than_iterations_is_single_wave(self) -> None:
        assert wave_bounds(3, 10) == [range(0, 3)]

    def test_zero_iterations_has_no_waves(self) -> None:
        assert wave_bounds(0, 10) == []

    def test_invalid_batch_size(self) -> None:
        with pytest.raises(ValueError, match="batch_size"):
            wave_bounds(10, 0)


class TestSchedulerInitialization:
    def test_negative_pause_rejected(self) -> None:
        with pytest.raises(ValueError, match="wave_pause_seconds"):
            BatchScheduler(wave_pause_seconds=-1)

    def test_pool_sized_to_concurrency(self, make_profile: Callable[..., LoadProfile]) -> None:
        """The default pool admits a whole wave even above 100 connections."""
        with patch("stresspro.engine.scheduler.httpx.AsyncClient") as client_cls:
            BatchScheduler()._default_client(make_profile(concurrency=150))

        assert client_cls.call_args.kwargs["limits"].max_connections == 150

    def test_explicit_connection_cap(self, make_profile: Callable[..., LoadProfile]) -> None:
        scheduler = BatchScheduler(config=ConnectionConfig(max_connections=50))
        with patch("stresspro.engine.scheduler.httpx.AsyncClient") as client_cls:
            scheduler._default_client(make_profile(concurrency=150))

        assert client_cls.call_args.kwargs["limits"].max_connections == 50


class TestSchedulerRun:
    """Tests for BatchScheduler.run()."""

    @pytest.mark.asyncio
    async def test_twenty_five_iterations_in_five_waves(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        """25 iterations at concurrency 5 complete with every result successful."""
        job = Job(id="job-1", profile=make_profile(iterations=25, concurrency=5))
        progress_seen: list[int] = []
        original_record_wave = job.record_wave

        def record_wave(results: list) -> None:
            original_record_wave(results)
            progress_seen.append(job.progress)

        job.record_wave = record_wave  # type: ignore[method-assign]

        await _scheduler(_ok).run(job)

        assert job.status is JobStatus.COMPLETED
        assert progress_seen == [5, 10, 15, 20, 25]
        assert job.progress == 25
        assert len(job.results) == 25
        assert all(r.success for r in job.results)
        assert sorted(r.id for r in job.results) == list(range(25))
        assert job.error is None
        assert job.finished_at is not None

    @pytest.mark.asyncio
    async def test_results_grouped_by_wave(self, make_profile: Callable[..., LoadProfile]) -> None:
        """Each block of results holds exactly the ids of one wave."""

        async def jittery(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(random.uniform(0, 0.01))
            return httpx.Response(200)

        job = Job(id="job-2", profile=make_profile(iterations=12, concurrency=4))
        await _scheduler(jittery).run(job)

        for start in range(0, 12, 4):
            block = job.results[start : start + 4]
            assert {r.id for r in block} == set(range(start, start + 4))

    @pytest.mark.asyncio
    async def test_in_flight_never_exceeds_concurrency(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        active = 0
        peak = 0

        async def tracking(request: httpx.Request) -> httpx.Response:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(random.uniform(0.001, 0.01))
            active -= 1
            return httpx.Response(200)

        job = Job(id="job-3", profile=make_profile(iterations=23, concurrency=4))
        await _scheduler(tracking).run(job)

        assert peak <= 4
        assert job.peak_in_flight <= 4
        assert job.progress == 23

    @pytest.mark.asyncio
    async def test_next_wave_waits_for_previous_to_settle(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        """When the k-th request starts, every earlier wave has fully settled."""
        started = 0
        finished = 0
        violations: list[tuple[int, int]] = []
        concurrency = 3

        async def barrier_check(request: httpx.Request) -> httpx.Response:
            nonlocal started, finished
            wave_index = started // concurrency
            if finished < wave_index * concurrency:
                violations.append((started, finished))
            started += 1
            await asyncio.sleep(random.uniform(0.001, 0.02))
            finished += 1
            return httpx.Response(200)

        job = Job(id="job-4", profile=make_profile(iterations=10, concurrency=concurrency))
        await _scheduler(barrier_check).run(job)

        assert violations == []
        assert finished == 10

    @pytest.mark.asyncio
    async def test_zero_iterations_completes_immediately(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        job = Job(id="job-5", profile=make_profile(iterations=0))
        await _scheduler(_ok).run(job)

        assert job.status is JobStatus.COMPLETED
        assert job.results == []
        assert job.progress == 0

    @pytest.mark.asyncio
    async def test_concurrency_above_iterations_is_single_wave(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        job = Job(id="job-6", profile=make_profile(iterations=3, concurrency=50))
        await _scheduler(_ok).run(job)

        assert job.status is JobStatus.COMPLETED
        assert job.progress == 3
        assert job.peak_in_flight == 3

    @pytest.mark.asyncio
    async def test_request_failures_do_not_fail_job(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        async def refused(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        job = Job(id="job-7", profile=make_profile(iterations=6, concurrency=3))
        await _scheduler(refused).run(job)

        assert job.status is JobStatus.COMPLETED
        assert job.progress == 6
        assert all(r.status == 0 and not r.success for r in job.results)

    @pytest.mark.asyncio
    async def test_unencodable_header_fails_requests_not_job(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        job = Job(
            id="job-7b",
            profile=make_profile(iterations=4, concurrency=2, headers={"X-Name": "café"}),
        )
        await _scheduler(_ok).run(job)

        assert job.status is JobStatus.COMPLETED
        assert job.error is None
        assert job.progress == 4
        assert all(r.outcome is RequestOutcome.FAILED for r in job.results)

    @pytest.mark.asyncio
    async def test_scheduler_error_fails_job_and_keeps_results(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        """An exception escaping the scheduling logic marks the job FAILED."""
        original_execute = RequestExecutor.execute

        async def exploding(self: RequestExecutor, request_id: int, profile: LoadProfile):
            if request_id == 7:
                raise RuntimeError("boom")
            return await original_execute(self, request_id, profile)

        job = Job(id="job-8", profile=make_profile(iterations=15, concurrency=5))
        with patch.object(RequestExecutor, "execute", exploding):
            await _scheduler(_ok).run(job)

        assert job.status is JobStatus.FAILED
        assert job.error == "boom"
        assert job.progress == 5
        assert len(job.results) == 5

    @pytest.mark.asyncio
    async def test_client_factory_error_fails_job(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        def broken_factory(profile: LoadProfile) -> httpx.AsyncClient:
            raise ImportError("h2 is not installed")

        scheduler = BatchScheduler(client_factory=broken_factory)
        job = Job(id="job-9", profile=make_profile(iterations=2))
        await scheduler.run(job)

        assert job.status is JobStatus.FAILED
        assert job.error == "h2 is not installed"
        assert job.results == []


class TestSchedulerCancellation:
    """Tests for job cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_requested_before_start(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        job = Job(id="job-10", profile=make_profile(iterations=10, concurrency=2))
        job.cancel_requested = True
        await _scheduler(_ok).run(job)

        assert job.status is JobStatus.CANCELLED
        assert job.results == []

    @pytest.mark.asyncio
    async def test_cancel_flag_stops_before_next_wave(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        job = Job(id="job-11", profile=make_profile(iterations=10, concurrency=2))

        async def cancel_after_first(request: httpx.Request) -> httpx.Response:
            job.cancel_requested = True
            return httpx.Response(200)

        await _scheduler(cancel_after_first).run(job)

        assert job.status is JobStatus.CANCELLED
        assert job.progress == 2
        assert len(job.results) == 2

    @pytest.mark.asyncio
    async def test_task_cancel_abandons_in_flight_wave(
        self, make_profile: Callable[..., LoadProfile]
    ) -> None:
        """Cancelling the task drops the in-flight wave and re-raises."""
        second_wave_started = asyncio.Event()
        calls = 0

        async def hang_in_second_wave(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls > 2:
                second_wave_started.set()
                await asyncio.sleep(10)
            return httpx.Response(200)

        job = Job(id="job-12", profile=make_profile(iterations=6, concurrency=2, timeout_ms=30000))
        task = asyncio.create_task(_scheduler(hang_in_second_wave).run(job))
        await asyncio.wait_for(second_wave_started.wait(), timeout=5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert job.status is JobStatus.CANCELLED
        assert job.progress == 2
        assert len(job.results) == job.progress
