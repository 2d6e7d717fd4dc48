"""Concurrency patterns module."""

from stresspro.patterns.semaphore import InFlightLimiter

__all__ = [
    "InFlightLimiter",
]
