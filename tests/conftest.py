"""pytest configuration and fixtures for fork-merge-engine tests.

This module provides shared fixtures for unit and integration tests.
Fixtures are minimal and focused.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

import pytest

from src.core.config import get_settings
from src.fork.warmup import clear_warmup_executor
from src.models.owned import Owned, create_owned


# =============================================================================
# Constants
# =============================================================================

TEST_SCOPE = "analysis"


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (fork → merge pipelines)")
    config.addinivalue_line("markers", "slow: Slow tests (timing-sensitive scheduling)")


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_global_state() -> Generator[None, None, None]:
    """Clear the warmup registration slot and cached settings around each test."""
    clear_warmup_executor()
    get_settings.cache_clear()
    yield
    clear_warmup_executor()
    get_settings.cache_clear()


# =============================================================================
# Context Fixtures
# =============================================================================


class FakeContext:
    """In-memory Context: records infer calls, echoes input as the value."""

    def __init__(self, scope: str = TEST_SCOPE) -> None:
        self.scope = scope
        self.cache_segments: list[Any] = []
        self.infer_calls: list[dict[str, Any]] = []

    async def infer(
        self, shape: Any, input: Any, options: dict[str, Any] | None = None
    ) -> Owned[Any]:
        self.infer_calls.append({"shape": shape, "input": input, "options": options})
        return create_owned(input, scope=self.scope, confidence=0.9)

    def bridge(self, owned: Owned[Any]) -> Owned[Any]:
        return create_owned(
            owned.value,
            scope=self.scope,
            confidence=owned.confidence,
            trace_id=owned.trace_id,
        )

    def use(self, owned: Owned[Any]) -> Any:
        return owned.value


@pytest.fixture
def ctx() -> FakeContext:
    """Provide a fresh parent context."""
    return FakeContext()


# =============================================================================
# Result Fixtures
# =============================================================================


@pytest.fixture
def make_owned() -> Callable[..., Owned[Any]]:
    """Factory for Owned values in the test scope.

    Returns:
        Callable (value, confidence=1.0) -> Owned.
    """

    def _make(value: Any, confidence: float = 1.0, scope: str = TEST_SCOPE) -> Owned[Any]:
        return create_owned(value, scope=scope, confidence=confidence)

    return _make


@pytest.fixture
def owned_list(make_owned: Callable[..., Owned[Any]]) -> Callable[..., list[Owned[Any]]]:
    """Build a list of Owned from (value, confidence) pairs."""

    def _build(*pairs: tuple[Any, float]) -> list[Owned[Any]]:
        return [make_owned(value, confidence) for value, confidence in pairs]

    return _build
