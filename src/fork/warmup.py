"""Warmup coordination for cache-optimized forks.

The actual warmup call is made by a provider integration outside this
package. This module defines the interface such an integration implements,
an adapter for plain async callables, and the process-wide registration slot
kept for integrations that cannot inject an executor into ForkOrchestrator.
"""

import math
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from src.core.exceptions import ConfigurationError
from src.core.logging import get_logger
from src.fork.types import WarmupResult


logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================


WARMUP_PROMPT_TOKENS = 20
WARMUP_MAX_OUTPUT_TOKENS = 10
CHARS_PER_TOKEN = 4

WarmupFn = Callable[[Any], Awaitable["WarmupResult | Mapping[str, int]"]]


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class WarmupExecutor(Protocol):
    """Protocol for cache warmup executors."""

    supports_cache_optimization: bool

    async def explicit_warmup(self, ctx: Any) -> WarmupResult:
        """Prime the provider cache once, before any branch starts."""
        ...


# =============================================================================
# Callable Adapter
# =============================================================================


class FunctionWarmupExecutor:
    """WarmupExecutor backed by a plain async callable.

    The callable may return a WarmupResult or a mapping with token_cost,
    cache_created_tokens and duration_ms. A missing or zero duration_ms is
    replaced by the measured wall-clock time of the call.
    """

    def __init__(
        self,
        warmup_fn: WarmupFn,
        supports_cache_optimization: bool = True,
    ) -> None:
        if not callable(warmup_fn):
            raise ConfigurationError(
                "warmup_fn must be an async callable",
                setting="warmup_fn",
                value=warmup_fn,
            )
        self._warmup_fn = warmup_fn
        self.supports_cache_optimization = supports_cache_optimization

    async def explicit_warmup(self, ctx: Any) -> WarmupResult:
        start = time.perf_counter()
        raw = await self._warmup_fn(ctx)
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        if isinstance(raw, WarmupResult):
            result = raw
        else:
            result = WarmupResult(
                token_cost=int(raw.get("token_cost", 0)),
                cache_created_tokens=int(raw.get("cache_created_tokens", 0)),
                duration_ms=int(raw.get("duration_ms", 0)),
            )

        if not result.duration_ms:
            result = WarmupResult(
                token_cost=result.token_cost,
                cache_created_tokens=result.cache_created_tokens,
                duration_ms=elapsed_ms,
            )
        return result


def create_warmup_executor(
    warmup_fn: WarmupFn,
    supports_cache_optimization: bool = True,
) -> FunctionWarmupExecutor:
    """Adapt an async callable into a WarmupExecutor.

    Example:
        >>> async def prime(ctx):
        ...     return {"token_cost": 120, "cache_created_tokens": 100}
        >>> executor = create_warmup_executor(prime)
        >>> executor.supports_cache_optimization
        True
    """
    return FunctionWarmupExecutor(warmup_fn, supports_cache_optimization)


# =============================================================================
# Registration Slot
# =============================================================================
_registered_executor: WarmupExecutor | None = None


def register_warmup_executor(executor: WarmupExecutor) -> None:
    """Register the process-wide warmup executor.

    ForkOrchestrator instances constructed with their own executor ignore it.
    """
    global _registered_executor
    _registered_executor = executor
    logger.info(
        "Warmup executor registered",
        executor=type(executor).__name__,
        supports_cache_optimization=executor.supports_cache_optimization,
    )


def get_warmup_executor() -> WarmupExecutor | None:
    """Return the registered warmup executor, if any."""
    return _registered_executor


def clear_warmup_executor() -> None:
    """Remove the registered warmup executor."""
    global _registered_executor
    _registered_executor = None


# =============================================================================
# Advisory Helpers
# =============================================================================


def should_warmup(
    executor: WarmupExecutor | None,
    branch_count: int,
    cached_tokens: int,
    min_tokens: int,
) -> bool:
    """Decide whether an explicit warmup is worth its cost.

    Args:
        executor: Executor that would run the warmup.
        branch_count: Number of branches that would share the cache.
        cached_tokens: Size of the cacheable prefix in tokens.
        min_tokens: Provider minimum for a cacheable prefix.

    Returns:
        True only if the executor supports cache optimization, more than one
        branch will read the cache, and the prefix reaches min_tokens.
    """
    if executor is None or not executor.supports_cache_optimization:
        return False
    if branch_count <= 1:
        return False
    return cached_tokens > 0 and cached_tokens >= min_tokens


def estimate_warmup_cost(cached_tokens: int = 0, system_prompt: str | None = None) -> int:
    """Rough token cost of one explicit warmup call."""
    total = cached_tokens
    if system_prompt:
        total += math.ceil(len(system_prompt) / CHARS_PER_TOKEN)
    return total + WARMUP_PROMPT_TOKENS + WARMUP_MAX_OUTPUT_TOKENS
