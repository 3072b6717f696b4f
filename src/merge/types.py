"""Types shared by every merge strategy.

Patterns applied:
- Dataclass with field(default_factory=list) for mutable defaults
- str Enum for wire-stable option and resolution values
- pydantic BaseModel for strategy options, frozen so a strategy instance is
  reproducible from its options alone
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from src.models.owned import Owned


U = TypeVar("U")


# =============================================================================
# Enums
# =============================================================================


class ConflictResolution(str, Enum):
    """How a disagreement between branches was settled."""

    VOTED = "voted"
    AVERAGED = "averaged"
    FIRST = "first"
    HIGHEST_CONFIDENCE = "highest-confidence"
    REJECTED = "rejected"


# =============================================================================
# Results
# =============================================================================


@dataclass
class RejectedValue:
    """A branch excluded from a merge.

    Attributes:
        branch: Original index of the branch in the merge input.
        value: The excluded value.
        reason: Why it was excluded.
    """

    branch: int
    value: Any
    reason: str


@dataclass
class MergeProvenance:
    """Which branches shaped a merge and how strongly they agreed.

    Attributes:
        contributing_branches: Original indices of branches that contributed.
        rejected_values: Branches excluded before or during reduction.
        consensus_level: Agreement in [0, 1].
    """

    contributing_branches: list[int] = field(default_factory=list)
    rejected_values: list[RejectedValue] = field(default_factory=list)
    consensus_level: float = 1.0


@dataclass
class MergeConflict:
    """A disagreement observed during a merge.

    Attributes:
        values: The competing values, in first-seen order.
        resolution: How it was settled.
        field: Object key for fieldwise merges, None otherwise.
    """

    values: list[Any]
    resolution: ConflictResolution
    field: str | None = None


@dataclass
class MergeResult(Generic[U]):
    """Outcome of a merge: the merged value plus its audit trail."""

    value: Owned[U]
    provenance: MergeProvenance = field(default_factory=MergeProvenance)
    conflicts: list[MergeConflict] = field(default_factory=list)


@dataclass(frozen=True)
class WeightedAverageResult:
    """Value produced by weighted-average merges.

    Attributes:
        value: Confidence-weighted mean.
        dispersion: Population standard deviation of the contributing values.
    """

    value: float
    dispersion: float


# =============================================================================
# Strategy Protocol
# =============================================================================


@runtime_checkable
class MergeStrategy(Protocol):
    """Protocol every merge strategy satisfies."""

    name: str

    def merge(self, results: Sequence[Owned[Any]]) -> MergeResult[Any]:
        """Reduce branch results into one merged result."""
        ...


# =============================================================================
# Options
# =============================================================================


class MergeOptions(BaseModel):
    """Options common to every strategy.

    Attributes:
        min_confidence: Results below this confidence are rejected before
            reduction. Default: 0 (accept everything).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    min_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
