"""Types shared by the fork orchestrator, warmup coordinator and detector."""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from src.core.exceptions import ConfigurationError
from src.models.owned import Owned


T = TypeVar("T")

ForkBranch = Callable[[Any], Awaitable[Owned[Any]]]
"""A branch: an async callable taking a child context, returning an Owned."""


# =============================================================================
# Enums
# =============================================================================


class ForkStrategy(str, Enum):
    """How branches are scheduled."""

    FAST_PARALLEL = "fast-parallel"
    CACHE_OPTIMIZED = "cache-optimized"


class WarmupStrategy(str, Enum):
    """Cache warmup ordering for cache-optimized forks."""

    EXPLICIT = "explicit"
    FIRST_BRANCH = "first-branch"
    NONE = "none"


class SchemaConflictBehavior(str, Enum):
    """What a cache-optimized fork does when branch shapes differ."""

    WARN = "warn"
    ERROR = "error"
    ALLOW = "allow"


def coerce_enum(enum_cls: type[Enum], value: Any, setting: str) -> Any:
    """Convert a string or enum member to enum_cls.

    Raises:
        ConfigurationError: If value is not a member of enum_cls.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        valid = [member.value for member in enum_cls]
        raise ConfigurationError(
            f"Invalid {setting} '{value}'. Valid options: {valid}",
            setting=setting,
            value=value,
        ) from e


# =============================================================================
# Results
# =============================================================================


@dataclass
class ForkCacheStats:
    """Cache accounting for one fork.

    Attributes:
        warmup_cost: Tokens spent by the explicit warmup call.
        branch_cache_hits: Cached tokens read per branch.
        total_saved: Tokens saved across branches.
    """

    warmup_cost: int = 0
    branch_cache_hits: list[int] = field(default_factory=list)
    total_saved: int = 0

    @classmethod
    def empty(cls, branch_count: int = 0) -> "ForkCacheStats":
        return cls(warmup_cost=0, branch_cache_hits=[0] * branch_count)


@dataclass
class ForkResult(Generic[T]):
    """Outcome of a fork.

    Attributes:
        results: One Owned per branch, in declaration order.
        cache_stats: Cache accounting.
        warnings: Soft-failure messages (degraded warmup, schema conflicts).
    """

    results: list[Owned[T]] = field(default_factory=list)
    cache_stats: ForkCacheStats = field(default_factory=ForkCacheStats)
    warnings: list[str] = field(default_factory=list)


@dataclass
class WarmupResult:
    """What an explicit warmup call reports."""

    token_cost: int = 0
    cache_created_tokens: int = 0
    duration_ms: int = 0


@dataclass
class SchemaConflictResult:
    """Outcome of shape-conflict detection.

    Attributes:
        has_conflict: True when more than one shape group exists.
        message: Human-readable explanation.
        conflicting_branch_groups: Branch indices grouped by shape.
        suggestions: Ways to restore cache sharing.
    """

    has_conflict: bool
    message: str = ""
    conflicting_branch_groups: list[list[int]] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


# =============================================================================
# Inputs
# =============================================================================


@dataclass
class BranchSpec:
    """A branch with an optional declared output shape.

    Attributes:
        run: Async callable executed against the branch's child context.
        shape: Output-shape descriptor used for conflict detection
            (str signature, pydantic model class, or JSON-like mapping).
        name: Optional label used in logs.
    """

    run: ForkBranch
    shape: Any = None
    name: str | None = None


def as_branch_spec(branch: "BranchSpec | ForkBranch") -> BranchSpec:
    """Wrap a plain callable in a BranchSpec."""
    if isinstance(branch, BranchSpec):
        return branch
    if not callable(branch):
        raise ConfigurationError(
            f"Fork branch must be callable, got {type(branch).__name__}",
            setting="branches",
            value=branch,
        )
    return BranchSpec(run=branch)


@dataclass
class ForkOptions:
    """Options for one fork call.

    warmup and on_schema_conflict left as None resolve to the configured
    defaults when the fork runs. Strings are accepted for every enum field.

    Attributes:
        strategy: Branch scheduling strategy.
        branches: Branches to run; plain callables or BranchSpec.
        warmup: Warmup ordering (cache-optimized only).
        on_schema_conflict: Behavior on differing shapes (cache-optimized only).
        provider: Provider the branches target; conflicts only matter for
            prefix-cache providers.
    """

    strategy: ForkStrategy | str
    branches: Sequence[BranchSpec | ForkBranch] = field(default_factory=list)
    warmup: WarmupStrategy | str | None = None
    on_schema_conflict: SchemaConflictBehavior | str | None = None
    provider: str | None = None

    def __post_init__(self) -> None:
        self.strategy = coerce_enum(ForkStrategy, self.strategy, "strategy")
        if self.warmup is not None:
            self.warmup = coerce_enum(WarmupStrategy, self.warmup, "warmup")
        if self.on_schema_conflict is not None:
            self.on_schema_conflict = coerce_enum(
                SchemaConflictBehavior, self.on_schema_conflict, "on_schema_conflict"
            )
        self.branches = [as_branch_spec(branch) for branch in self.branches]

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "ForkOptions":
        """Build options from a plain mapping.

        Raises:
            ConfigurationError: If a field is missing or unknown.
        """
        try:
            return cls(**options)
        except TypeError as e:
            raise ConfigurationError(
                f"Invalid fork options: {e}",
                setting="ForkOptions",
                value=dict(options),
            ) from e
