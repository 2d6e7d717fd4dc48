"""In-flight limiter for bounding concurrent load requests using asyncio.Semaphore."""

import asyncio
from typing import Self


class InFlightLimiter:
    """
    Async context manager that caps how many requests are in flight at once.

    The scheduler already bounds each wave to the profile's concurrency; the
    limiter enforces the same cap per request and records the peak, which is
    reported on the job.

    Args:
        max_in_flight: Maximum number of concurrent requests allowed.

    Example:
        ```python
        limiter = InFlightLimiter(max_in_flight=5)

        async def fire(request_id):
            async with limiter:
                # At most 5 of these run at the same time
                return await executor.execute(request_id, profile)
        ```
    """

    def __init__(self, max_in_flight: int) -> None:
        """Initialize the InFlightLimiter.

        Args:
            max_in_flight: Maximum number of concurrent requests allowed.

        Raises:
            ValueError: If max_in_flight is less than 1.
        """
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")

        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._max_in_flight = max_in_flight
        self._current = 0
        self._peak = 0

    @property
    def max_in_flight(self) -> int:
        """Maximum number of concurrent requests allowed."""
        return self._max_in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of requests observed in flight at once."""
        return self._peak

    async def __aenter__(self) -> Self:
        """Acquire a slot. Counter updates do not yield, so no lock is needed."""
        await self._semaphore.acquire()
        self._current += 1
        self._peak = max(self._peak, self._current)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Release the slot when the request settles."""
        self._current -= 1
        self._semaphore.release()
