"""Pytest configuration and fixtures for stresspro tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
import pytest_asyncio
from mock_target import MockTarget, MockTargetConfig

from stresspro.engine.models import LoadProfile


@pytest.fixture()
def make_profile() -> Callable[..., LoadProfile]:
    """Build a LoadProfile with test-friendly defaults."""

    def _make(**overrides: Any) -> LoadProfile:
        fields: dict[str, Any] = {
            "target_url": "http://example.test/",
            "iterations": 1,
            "concurrency": 1,
            "timeout_ms": 2000,
        }
        fields.update(overrides)
        return LoadProfile(**fields)

    return _make


@pytest_asyncio.fixture()
async def target() -> AsyncIterator[MockTarget]:
    """Run a mock load target on a free localhost port."""
    async with MockTarget(MockTargetConfig(base_latency_ms=5.0)) as server:
        yield server
