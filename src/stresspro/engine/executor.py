"""Request executor: builds and issues exactly one load request.

Each call to :meth:`RequestExecutor.execute` produces one
:class:`~stresspro.engine.models.RequestResult`. Request-level failures
(network errors, timeouts) are captured in the result and never raised.
Only ``asyncio.CancelledError`` escapes, which is how a cancelled job
abandons its in-flight wave.
"""

from __future__ import annotations

import asyncio
import random
import secrets
import time
from contextlib import suppress

import httpx

from stresspro.engine.models import LoadProfile, RequestOutcome, RequestResult

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/118.0",
)

DEFAULT_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

CACHE_BUST_PARAM = "_stress"
SERVER_TIMING_HEADER = "server-timing"
PAYLOAD_FILLER = b"A"


def bust_cache(url: str) -> str:
    """Append a unique query parameter so caches treat the request as distinct."""
    separator = "&" if "?" in url else "?"
    token = f"{time.time_ns() // 1_000_000}_{secrets.token_hex(4)}"
    return f"{url}{separator}{CACHE_BUST_PARAM}={token}"


def build_headers(profile: LoadProfile) -> httpx.Headers:
    """Assemble request headers: defaults first, profile headers override.

    Header names are compared case-insensitively, so a profile's
    ``user-agent`` replaces the rotated ``User-Agent``.
    """
    headers = httpx.Headers({"User-Agent": random.choice(USER_AGENTS), **DEFAULT_HEADERS})
    headers.update(profile.headers)
    return headers


def build_payload(profile: LoadProfile) -> bytes | None:
    """Return the synthetic request body, or None when the profile sends none."""
    if profile.method == "POST" and profile.payload_size_kb > 0:
        return PAYLOAD_FILLER * (profile.payload_size_kb * 1024)
    return None


class RequestExecutor:
    """Issues single load requests over a shared httpx.AsyncClient.

    The executor holds no per-request state, so concurrent calls are
    independent of each other.

    Args:
        client: Pooled client used to send requests.

    Example:
        ```python
        async with httpx.AsyncClient() as client:
            executor = RequestExecutor(client)
            result = await executor.execute(0, profile)
            print(result.status, result.duration_ms)
        ```
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def execute(self, request_id: int, profile: LoadProfile) -> RequestResult:
        """Issue one request for the given iteration and normalize its outcome.

        The deadline covers everything from request start until response
        headers arrive. The body is drained afterwards and discarded.

        Args:
            request_id: The 0-based iteration index.
            profile: The job's load profile.

        Returns:
            RequestResult with the response details or the failure cause.
        """
        deadline = profile.timeout_ms / 1000
        start_time = time.perf_counter()

        try:
            # Header values httpx cannot encode fail this request only
            url = bust_cache(profile.target_url) if profile.cache_busting else profile.target_url
            headers = build_headers(profile)
            content = build_payload(profile)
            if content is not None:
                headers["Content-Type"] = "text/plain"

            async with asyncio.timeout(deadline):
                request = self._client.build_request(
                    profile.method, url, headers=headers, content=content
                )
                response = await self._client.send(request, stream=True)
            duration_ms = (time.perf_counter() - start_time) * 1000
        except (TimeoutError, httpx.TimeoutException):
            return self._failed(
                request_id, start_time, f"Request timed out after {profile.timeout_ms} ms"
            )
        except Exception as e:
            return self._failed(request_id, start_time, str(e) or type(e).__name__)

        response_headers = {key.lower(): value for key, value in response.headers.items()}
        try:
            # Drain so the connection goes back to the pool fully read
            with suppress(TimeoutError, httpx.HTTPError):
                async with asyncio.timeout(deadline):
                    await response.aread()
        finally:
            await response.aclose()

        return RequestResult(
            id=request_id,
            start_time=start_time,
            duration_ms=duration_ms,
            status=response.status_code,
            outcome=RequestOutcome.COMPLETED,
            response_headers=response_headers,
            server_timing=response_headers.get(SERVER_TIMING_HEADER),
        )

    @staticmethod
    def _failed(request_id: int, start_time: float, message: str) -> RequestResult:
        return RequestResult(
            id=request_id,
            start_time=start_time,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            status=0,
            outcome=RequestOutcome.FAILED,
            error=message,
        )
