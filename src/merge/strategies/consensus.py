"""Consensus merges: require k of n branches to agree."""

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from src.core.exceptions import ConsensusImpossibleError, ConsensusNotMetError
from src.merge.base import (
    BaseMergeStrategy,
    IndexedResult,
    average_confidence,
    build_options,
    values_equal,
)
from src.merge.types import (
    ConflictResolution,
    MergeConflict,
    MergeOptions,
    MergeProvenance,
    MergeResult,
    RejectedValue,
)
from src.models.owned import Owned


class ConsensusFailureMode(str, Enum):
    """What happens when fewer than k branches agree."""

    LOW_CONFIDENCE = "low-confidence"
    ERROR = "error"


class RequireConsensusOptions(MergeOptions):
    """Options for require_consensus.

    Attributes:
        k: Minimum number of agreeing branches.
        on_failure: "low-confidence" returns the best group with confidence
            0; "error" raises ConsensusNotMetError.
        tolerance: Numbers within this distance agree. Ignored when
            equality_fn is set.
        equality_fn: Custom agreement test.
    """

    k: int
    on_failure: ConsensusFailureMode = ConsensusFailureMode.LOW_CONFIDENCE
    tolerance: float = Field(default=0.0, ge=0.0)
    equality_fn: Callable[[Any, Any], bool] | None = None

    @field_validator("k", mode="before")
    @classmethod
    def validate_k(cls, v: Any) -> int:
        """Accept positive integers, including integral floats such as 3.0."""
        valid = (
            not isinstance(v, bool)
            and isinstance(v, (int, float))
            and (isinstance(v, int) or v.is_integer())
            and v >= 1
        )
        if not valid:
            raise ValueError(f"k must be a positive integer, got {v}")
        return int(v)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class RequireConsensusStrategy(BaseMergeStrategy[RequireConsensusOptions]):
    """Accept a value only when at least k branches agree on it."""

    name = "require-consensus"

    def agree(self, a: Any, b: Any) -> bool:
        if self.options.equality_fn is not None:
            return bool(self.options.equality_fn(a, b))
        if _is_number(a) and _is_number(b):
            return abs(a - b) <= self.options.tolerance
        return values_equal(a, b)

    def merge(self, results: Sequence[Owned[Any]]) -> MergeResult[Any]:
        if results and self.options.k > len(results):
            raise ConsensusImpossibleError(
                k=self.options.k, total=len(results), strategy=self.name
            )
        return super().merge(results)

    def reduce(
        self,
        valid: list[IndexedResult],
        rejected: list[RejectedValue],
    ) -> MergeResult[Any]:
        total = len(valid) + len(rejected)
        k = self.options.k

        groups: list[list[IndexedResult]] = []
        for index, owned in valid:
            for group in groups:
                if self.agree(owned.value, group[0][1].value):
                    group.append((index, owned))
                    break
            else:
                groups.append([(index, owned)])

        largest = groups[0]
        for group in groups[1:]:
            if len(group) > len(largest):
                largest = group

        consensus_met = len(largest) >= k
        if not consensus_met and self.options.on_failure is ConsensusFailureMode.ERROR:
            raise ConsensusNotMetError(
                k=k, max_agreement=len(largest), strategy=self.name
            )

        members = {index for index, _ in largest}
        for index, owned in valid:
            if index not in members:
                rejected.append(
                    RejectedValue(
                        branch=index,
                        value=owned.value,
                        reason="did not match consensus value",
                    )
                )

        conflicts = []
        if len(groups) > 1:
            conflicts.append(
                MergeConflict(
                    values=[group[0][1].value for group in groups],
                    resolution=ConflictResolution.VOTED,
                )
            )

        confidence = average_confidence(largest) if consensus_met else 0.0
        return MergeResult(
            value=self.owned(largest[0][1].value, confidence),
            provenance=MergeProvenance(
                contributing_branches=[index for index, _ in largest],
                rejected_values=rejected,
                consensus_level=len(largest) / total,
            ),
            conflicts=conflicts,
        )


def require_consensus(k: Any, **options: Any) -> RequireConsensusStrategy:
    """Create a k-of-n consensus strategy.

    Args:
        k: Minimum number of agreeing branches (positive integer).

    Keyword Args:
        on_failure: "low-confidence" (default) or "error".
        tolerance: Numeric agreement tolerance. Default: 0.
        equality_fn: Custom agreement test.
        min_confidence: Reject results below this confidence. Default: 0.

    Raises:
        ConfigurationError: If k is not a positive integer.
    """
    return RequireConsensusStrategy(
        build_options(RequireConsensusOptions, {"k": k, **options})
    )
