"""Domain models for the StressPro load engine.

This module defines the load profile a caller submits, the per-request result
record the executor produces, and the aggregate statistics computed over a
job's results.
"""

from __future__ import annotations

import statistics
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})


class ProfileValidationError(ValueError):
    """Raised when a load profile is structurally invalid."""

    pass


class RequestOutcome(str, Enum):
    """Outcome of a single load request.

    Attributes:
        COMPLETED: A response was received, regardless of status code.
        FAILED: No response was received (network error, timeout or abort).
    """

    COMPLETED = "completed"
    FAILED = "failed"


def _require_int(data: dict[str, Any], key: str, default: int | None, minimum: int) -> int:
    value = data.get(key, default)
    if value is None:
        raise ProfileValidationError(f"{key} is required")
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProfileValidationError(f"{key} must be an integer")
    if value < minimum:
        raise ProfileValidationError(f"{key} must be at least {minimum}")
    return value


@dataclass(frozen=True, slots=True)
class LoadProfile:
    """Declarative description of a load test.

    Attributes:
        target_url: URL every request is sent to.
        method: HTTP method, upper-cased.
        iterations: Total number of requests to issue.
        concurrency: Requests in flight per wave (default: 10).
        timeout_ms: Per-request deadline in milliseconds (default: 10000).
        payload_size_kb: Size of the synthetic POST body in KiB (default: 0).
        cache_busting: Append a unique query parameter to every request.
        headers: Extra headers merged over the defaults.
    """

    target_url: str
    iterations: int
    method: str = "GET"
    concurrency: int = 10
    timeout_ms: int = 10000
    payload_size_kb: int = 0
    cache_busting: bool = False
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> LoadProfile:
        """Build a profile from a decoded JSON body.

        Accepts ``targetUrl`` or ``url`` for the target.

        Args:
            data: The decoded request body.

        Returns:
            A validated LoadProfile.

        Raises:
            ProfileValidationError: If a field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ProfileValidationError("profile must be a JSON object")

        target_url = data.get("targetUrl", data.get("url"))
        if not isinstance(target_url, str) or not target_url.strip():
            raise ProfileValidationError("targetUrl is required")
        target_url = target_url.strip()
        if not target_url.lower().startswith(("http://", "https://")):
            raise ProfileValidationError("targetUrl must be an http or https URL")

        method = data.get("method", "GET")
        if not isinstance(method, str) or method.upper() not in HTTP_METHODS:
            raise ProfileValidationError(f"unsupported method: {method!r}")

        cache_busting = data.get("cacheBusting", False)
        if not isinstance(cache_busting, bool):
            raise ProfileValidationError("cacheBusting must be a boolean")

        headers = data.get("headers") or {}
        if not isinstance(headers, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in headers.items()
        ):
            raise ProfileValidationError("headers must map strings to strings")
        if not all(k.isascii() and v.isascii() for k, v in headers.items()):
            raise ProfileValidationError("header names and values must be ASCII")

        return cls(
            target_url=target_url,
            method=method.upper(),
            iterations=_require_int(data, "iterations", None, 0),
            concurrency=_require_int(data, "concurrency", 10, 1),
            timeout_ms=_require_int(data, "timeoutMs", 10000, 1),
            payload_size_kb=_require_int(data, "payloadSizeKB", 0, 0),
            cache_busting=cache_busting,
            headers=dict(headers),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        return {
            "targetUrl": self.target_url,
            "method": self.method,
            "iterations": self.iterations,
            "concurrency": self.concurrency,
            "timeoutMs": self.timeout_ms,
            "payloadSizeKB": self.payload_size_kb,
            "cacheBusting": self.cache_busting,
            "headers": dict(self.headers),
        }


@dataclass(frozen=True, slots=True)
class RequestResult:
    """Result of a single load request.

    This dataclass is immutable (frozen=True) and uses slots for memory efficiency.

    Attributes:
        id: The 0-based iteration index, unique within a job.
        start_time: Monotonic timestamp (``time.perf_counter``) when the request began.
        duration_ms: Elapsed time in milliseconds.
        status: HTTP status code (0 if no response was received).
        outcome: COMPLETED if a response was received, FAILED otherwise.
        response_headers: Lower-cased response headers, only when completed.
        server_timing: Raw ``Server-Timing`` header value, when present.
        error: Human-readable failure cause, only when failed.
    """

    id: int
    start_time: float
    duration_ms: float
    status: int
    outcome: RequestOutcome
    response_headers: dict[str, str] | None = None
    server_timing: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        """True when a response was received with a 2xx status."""
        return self.outcome is RequestOutcome.COMPLETED and 200 <= self.status < 300

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation, omitting absent optional fields."""
        record: dict[str, Any] = {
            "id": self.id,
            "startTime": self.start_time,
            "duration": self.duration_ms,
            "status": self.status,
            "outcome": self.outcome.value,
            "success": self.success,
        }
        if self.response_headers is not None:
            record["headers"] = self.response_headers
        if self.server_timing is not None:
            record["serverTiming"] = self.server_timing
        if self.error is not None:
            record["error"] = self.error
        return record


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Configuration for the pooled HTTP client each job uses.

    Attributes:
        max_connections: Optional cap on pooled connections per job. None sizes
            the pool to the profile's concurrency (default: None).
        max_keepalive_connections: Keep-alive connections to maintain (default: 20).
        keepalive_expiry: Seconds before closing idle keep-alive connections (default: 30.0).
        http2: Enable HTTP/2 (default: False, requires the ``h2`` package).
    """

    max_connections: int | None = None
    max_keepalive_connections: int = 20
    keepalive_expiry: float = 30.0
    http2: bool = False


def _percentile(sorted_data: list[float], p: float) -> float:
    """Calculate percentile from sorted data using linear interpolation."""
    n = len(sorted_data)
    if n == 0:
        return 0.0
    k = (n - 1) * p
    f = int(k)
    c = f + 1 if f + 1 < n else f
    return sorted_data[f] + (k - f) * (sorted_data[c] - sorted_data[f])


@dataclass(frozen=True, slots=True)
class JobSummary:
    """Aggregate statistics over a job's results."""

    total: int
    successful: int
    failed: int
    non_2xx: int
    avg_latency_ms: float
    p50_latency_ms: float
    p95_latency_ms: float
    p99_latency_ms: float
    status_counts: dict[int, int]

    @classmethod
    def from_results(cls, results: list[RequestResult]) -> JobSummary:
        latencies = sorted(r.duration_ms for r in results)
        successful = sum(1 for r in results if r.success)
        failed = sum(1 for r in results if r.outcome is RequestOutcome.FAILED)
        return cls(
            total=len(results),
            successful=successful,
            failed=failed,
            non_2xx=len(results) - successful - failed,
            avg_latency_ms=statistics.fmean(latencies) if latencies else 0.0,
            p50_latency_ms=statistics.median(latencies) if latencies else 0.0,
            p95_latency_ms=_percentile(latencies, 0.95),
            p99_latency_ms=_percentile(latencies, 0.99),
            status_counts=dict(Counter(r.status for r in results)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "non2xx": self.non_2xx,
            "avgLatencyMs": self.avg_latency_ms,
            "p50LatencyMs": self.p50_latency_ms,
            "p95LatencyMs": self.p95_latency_ms,
            "p99LatencyMs": self.p99_latency_ms,
            # JSON object keys are strings
            "statusCounts": {str(k): v for k, v in sorted(self.status_counts.items())},
        }
