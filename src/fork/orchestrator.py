"""Fork orchestration - Branches run concurrently → ordered results.

ForkOrchestrator runs a set of independent inference branches against
isolated child contexts and returns their results in declaration order.

Strategies:
    fast-parallel:   [All](parallel) → results
    cache-optimized: [Warmup] → [All](parallel) → results      (explicit)
                     [Branch 0] → [Rest](parallel) → results   (first-branch)
                     [All](parallel) → results                 (none)

A cache-optimized fork whose explicit warmup has no usable executor falls
back to fast-parallel with one warning; it never fails for that reason.

Failure semantics: the first branch exception reaches the caller as soon as
it is raised. Sibling branches already running are neither cancelled nor
awaited. Wrap the call in asyncio.wait_for() to bound its duration.
"""

import asyncio
import time
from collections.abc import Mapping, Sequence
from typing import Any

from src.core.config import Settings, get_settings
from src.core.logging import get_logger, reset_fork_id, set_fork_id
from src.fork.conflict import detect_schema_conflict, handle_schema_conflict
from src.fork.context import ChildContext, Context, create_child_context
from src.fork.types import (
    BranchSpec,
    ForkCacheStats,
    ForkOptions,
    ForkResult,
    ForkStrategy,
    SchemaConflictBehavior,
    WarmupStrategy,
    coerce_enum,
)
from src.fork.warmup import WarmupExecutor, get_warmup_executor
from src.models.owned import Owned, generate_trace_id
from src.observability.tracing import get_tracer


logger = get_logger(__name__)
tracer = get_tracer(__name__)


# =============================================================================
# Constants
# =============================================================================


NO_EXECUTOR_WARNING = (
    "Cache optimization requested but no warmup executor available. "
    "Falling back to fast-parallel execution."
)

UNSUPPORTED_EXECUTOR_WARNING = (
    "Cache optimization requested but the warmup executor does not support "
    "cache optimization. Falling back to fast-parallel execution."
)


# =============================================================================
# ForkOrchestrator
# =============================================================================


class ForkOrchestrator:
    """Runs fork branches and collects their results in declaration order.

    Example:
        >>> orchestrator = ForkOrchestrator(warmup_executor=executor)
        >>> result = await orchestrator.execute(
        ...     ctx,
        ...     ForkOptions(strategy="cache-optimized", branches=[a, b, c]),
        ... )
        >>> [owned.value for owned in result.results]
    """

    def __init__(
        self,
        warmup_executor: WarmupExecutor | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            warmup_executor: Executor for explicit warmups. When omitted, the
                process-wide registered executor is looked up at call time.
            settings: Settings override; defaults to get_settings().
        """
        self._warmup_executor = warmup_executor
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def warmup_executor(self) -> WarmupExecutor | None:
        """Injected executor, else the registered one."""
        if self._warmup_executor is not None:
            return self._warmup_executor
        return get_warmup_executor()

    # =========================================================================
    # Public API
    # =========================================================================

    async def execute(
        self,
        ctx: Context,
        options: ForkOptions | Mapping[str, Any],
    ) -> ForkResult[Any]:
        """Run every branch of a fork.

        Args:
            ctx: Parent context. Each branch receives its own child context.
            options: ForkOptions or a mapping of its fields.

        Returns:
            ForkResult with one Owned per branch in declaration order.

        Raises:
            ConfigurationError: If options are invalid.
            SchemaConflictError: If on_schema_conflict="error" and declared
                branch shapes differ. Raised before any branch starts.
            Exception: Whatever the first failing branch or warmup raises.
        """
        if not isinstance(options, ForkOptions):
            options = ForkOptions.from_mapping(options)

        branches: list[BranchSpec] = list(options.branches)
        if not branches:
            return ForkResult(results=[], cache_stats=ForkCacheStats.empty(0))

        # Fork point: every child snapshots the parent before anything runs
        children = [create_child_context(ctx, index) for index in range(len(branches))]

        fork_id = generate_trace_id("fork")
        token = set_fork_id(fork_id)
        start_time = time.perf_counter()
        try:
            with tracer.start_as_current_span("fork") as span:
                span.set_attribute("fork.id", fork_id)
                span.set_attribute("fork.strategy", options.strategy.value)
                span.set_attribute("fork.branch_count", len(branches))

                logger.info(
                    "Fork started",
                    strategy=options.strategy.value,
                    branch_count=len(branches),
                )

                if options.strategy is ForkStrategy.FAST_PARALLEL:
                    result = await self._execute_fast_parallel(children, branches)
                else:
                    result = await self._execute_cache_optimized(
                        ctx, children, branches, options
                    )

                span.set_attribute("fork.warning_count", len(result.warnings))
                logger.info(
                    "Fork completed",
                    strategy=options.strategy.value,
                    branch_count=len(branches),
                    warmup_cost=result.cache_stats.warmup_cost,
                    warning_count=len(result.warnings),
                    duration_ms=int((time.perf_counter() - start_time) * 1000),
                )
                return result
        finally:
            reset_fork_id(token)

    # =========================================================================
    # Strategies
    # =========================================================================

    async def _execute_fast_parallel(
        self, children: Sequence[ChildContext], branches: Sequence[BranchSpec]
    ) -> ForkResult[Any]:
        results = await self._run_concurrently(children, branches)
        return ForkResult(
            results=results,
            cache_stats=ForkCacheStats.empty(len(branches)),
        )

    async def _execute_cache_optimized(
        self,
        ctx: Context,
        children: Sequence[ChildContext],
        branches: Sequence[BranchSpec],
        options: ForkOptions,
    ) -> ForkResult[Any]:
        settings = self.settings
        warmup = options.warmup or coerce_enum(
            WarmupStrategy, settings.default_warmup, "warmup"
        )
        behavior = options.on_schema_conflict or coerce_enum(
            SchemaConflictBehavior,
            settings.default_on_schema_conflict,
            "on_schema_conflict",
        )

        warnings: list[str] = []

        # Phase 1: shape conflicts, before anything runs
        conflict_warning = self._check_schema_conflict(
            branches, behavior, options.provider, settings
        )
        if conflict_warning:
            warnings.append(conflict_warning)

        # Phase 2: warmup
        warmup_cost = 0
        if warmup is WarmupStrategy.EXPLICIT:
            executor = self.warmup_executor
            if executor is None or not executor.supports_cache_optimization:
                message = (
                    NO_EXECUTOR_WARNING
                    if executor is None
                    else UNSUPPORTED_EXECUTOR_WARNING
                )
                logger.warning(message, branch_count=len(branches))
                warnings.append(message)
                fallback = await self._execute_fast_parallel(children, branches)
                fallback.warnings = warnings
                return fallback

            with tracer.start_as_current_span("fork.warmup"):
                warmup_result = await executor.explicit_warmup(ctx)
            warmup_cost = warmup_result.token_cost
            logger.info(
                "Cache warmup completed",
                token_cost=warmup_result.token_cost,
                cache_created_tokens=warmup_result.cache_created_tokens,
                duration_ms=warmup_result.duration_ms,
            )

        # Phase 3: branches
        if warmup is WarmupStrategy.FIRST_BRANCH:
            first = await self._run_branch(children[0], branches[0])
            rest = await self._run_concurrently(children[1:], branches[1:])
            results = [first, *rest]
        else:
            results = await self._run_concurrently(children, branches)

        return ForkResult(
            results=results,
            cache_stats=ForkCacheStats(
                warmup_cost=warmup_cost,
                branch_cache_hits=[0] * len(branches),
                total_saved=0,
            ),
            warnings=warnings,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_schema_conflict(
        self,
        branches: Sequence[BranchSpec],
        behavior: SchemaConflictBehavior,
        provider: str | None,
        settings: Settings,
    ) -> str | None:
        if behavior is SchemaConflictBehavior.ALLOW:
            return None

        declared = [
            (index, branch.shape)
            for index, branch in enumerate(branches)
            if branch.shape is not None
        ]
        if len(declared) < 2:
            return None

        conflict = detect_schema_conflict(
            [shape for _, shape in declared],
            provider=provider,
            branch_indices=[index for index, _ in declared],
            settings=settings,
        )
        message = handle_schema_conflict(conflict, behavior)
        if message:
            logger.warning(
                "Schema conflict across fork branches",
                branch_groups=conflict.conflicting_branch_groups,
            )
        return message

    async def _run_concurrently(
        self,
        children: Sequence[ChildContext],
        branches: Sequence[BranchSpec],
    ) -> list[Owned[Any]]:
        if not branches:
            return []
        return list(
            await asyncio.gather(
                *(
                    self._run_branch(child, branch)
                    for child, branch in zip(children, branches)
                )
            )
        )

    async def _run_branch(self, child: ChildContext, branch: BranchSpec) -> Owned[Any]:
        with tracer.start_as_current_span("fork.branch") as span:
            span.set_attribute("fork.branch_index", child.branch_index)
            if branch.name:
                span.set_attribute("fork.branch_name", branch.name)
            return await branch.run(child)


# =============================================================================
# Module-level API
# =============================================================================


async def fork(
    ctx: Context,
    options: ForkOptions | Mapping[str, Any],
    warmup_executor: WarmupExecutor | None = None,
    settings: Settings | None = None,
) -> ForkResult[Any]:
    """Run a fork with a one-off orchestrator.

    Example:
        >>> result = await fork(
        ...     ctx,
        ...     ForkOptions(strategy="fast-parallel", branches=[risk, summary]),
        ... )
    """
    orchestrator = ForkOrchestrator(warmup_executor=warmup_executor, settings=settings)
    return await orchestrator.execute(ctx, options)
