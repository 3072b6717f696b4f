"""Fork execution: concurrent branches, cache warmup, shape conflicts."""

from src.fork.conflict import (
    are_shapes_compatible,
    compute_shape_signature,
    describe_shape_differences,
    detect_schema_conflict,
    handle_schema_conflict,
)
from src.fork.context import ChildContext, Context, create_child_context
from src.fork.orchestrator import ForkOrchestrator, fork
from src.fork.types import (
    BranchSpec,
    ForkBranch,
    ForkCacheStats,
    ForkOptions,
    ForkResult,
    ForkStrategy,
    SchemaConflictBehavior,
    SchemaConflictResult,
    WarmupResult,
    WarmupStrategy,
)
from src.fork.warmup import (
    FunctionWarmupExecutor,
    WarmupExecutor,
    clear_warmup_executor,
    create_warmup_executor,
    estimate_warmup_cost,
    get_warmup_executor,
    register_warmup_executor,
    should_warmup,
)

__all__ = [
    # Orchestration
    "ForkOrchestrator",
    "fork",
    # Types
    "BranchSpec",
    "ForkBranch",
    "ForkCacheStats",
    "ForkOptions",
    "ForkResult",
    "ForkStrategy",
    "SchemaConflictBehavior",
    "SchemaConflictResult",
    "WarmupResult",
    "WarmupStrategy",
    # Context
    "ChildContext",
    "Context",
    "create_child_context",
    # Conflict detection
    "are_shapes_compatible",
    "compute_shape_signature",
    "describe_shape_differences",
    "detect_schema_conflict",
    "handle_schema_conflict",
    # Warmup
    "FunctionWarmupExecutor",
    "WarmupExecutor",
    "clear_warmup_executor",
    "create_warmup_executor",
    "estimate_warmup_cost",
    "get_warmup_executor",
    "register_warmup_executor",
    "should_warmup",
]
