"""Object merges: combine mapping results field by field."""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from src.core.exceptions import FieldMismatchError, MergeError
from src.merge.base import (
    BaseMergeStrategy,
    IndexedResult,
    average_confidence,
    build_options,
)
from src.merge.strategies.categorical import TieBreaker, group_by_value, pick_winner
from src.merge.types import (
    ConflictResolution,
    MergeConflict,
    MergeOptions,
    MergeProvenance,
    MergeResult,
    RejectedValue,
)


class FieldStrategy(str, Enum):
    """How the merged object is assembled."""

    VOTE = "vote"
    FIRST = "first"
    HIGHEST_CONFIDENCE = "highest-confidence"


_RESOLUTIONS = {
    FieldStrategy.VOTE: ConflictResolution.VOTED,
    FieldStrategy.FIRST: ConflictResolution.FIRST,
    FieldStrategy.HIGHEST_CONFIDENCE: ConflictResolution.HIGHEST_CONFIDENCE,
}


class FieldwiseOptions(MergeOptions):
    """Options for fieldwise.

    Attributes:
        field_strategy: "vote" decides each field by weighted vote; "first"
            and "highest-confidence" take one branch's whole object.
        allow_partial: Accept branches with different key sets.
        tiebreaker: Per-field vote tie rule. Default: "first".
    """

    field_strategy: FieldStrategy = FieldStrategy.VOTE
    allow_partial: bool = False
    tiebreaker: TieBreaker = TieBreaker.FIRST


class FieldwiseStrategy(BaseMergeStrategy[FieldwiseOptions]):
    """Merge mappings field by field."""

    name = "fieldwise-merge"

    def _check_mappings(self, valid: list[IndexedResult]) -> None:
        for index, owned in valid:
            if not isinstance(owned.value, Mapping):
                raise MergeError(
                    f"Fieldwise merge requires mapping values, branch {index} "
                    f"returned {type(owned.value).__name__}",
                    strategy=self.name,
                )

    def _check_fields(self, valid: list[IndexedResult]) -> None:
        expected = set(valid[0][1].value.keys())
        for index, owned in valid[1:]:
            if set(owned.value.keys()) != expected:
                raise FieldMismatchError(
                    "Field mismatch: branches have different fields. "
                    "Set allow_partial=True to allow this.",
                    branch=index,
                    strategy=self.name,
                )

    def reduce(
        self,
        valid: list[IndexedResult],
        rejected: list[RejectedValue],
    ) -> MergeResult[dict[str, Any]]:
        self._check_mappings(valid)
        if not self.options.allow_partial:
            self._check_fields(valid)

        all_fields: list[str] = []
        for _, owned in valid:
            for key in owned.value:
                if key not in all_fields:
                    all_fields.append(key)

        strategy = self.options.field_strategy
        resolution = _RESOLUTIONS[strategy]
        merged: dict[str, Any] = {}
        conflicts: list[MergeConflict] = []

        for key in all_fields:
            # A missing key is not a value
            groups = group_by_value(
                (index, owned.value[key], owned.confidence)
                for index, owned in valid
                if key in owned.value
            )
            if len(groups) > 1:
                conflicts.append(
                    MergeConflict(
                        values=[group.value for group in groups],
                        resolution=resolution,
                        field=key,
                    )
                )
            if strategy is FieldStrategy.VOTE:
                merged[key] = pick_winner(groups, self.options.tiebreaker).value

        if strategy is FieldStrategy.FIRST:
            merged = dict(valid[0][1].value)
        elif strategy is FieldStrategy.HIGHEST_CONFIDENCE:
            best = valid[0][1]
            for _, owned in valid[1:]:
                if owned.confidence > best.confidence:
                    best = owned
            merged = dict(best.value)

        total_fields = len(all_fields)
        consensus = 1 - len(conflicts) / total_fields if total_fields else 1.0

        return MergeResult(
            value=self.owned(merged, average_confidence(valid) * consensus),
            provenance=MergeProvenance(
                contributing_branches=[index for index, _ in valid],
                rejected_values=rejected,
                consensus_level=consensus,
            ),
            conflicts=conflicts,
        )


def fieldwise(**options: Any) -> FieldwiseStrategy:
    """Create a fieldwise object merge strategy.

    Keyword Args:
        min_confidence: Reject results below this confidence. Default: 0.
        field_strategy: "vote" (default), "first" or "highest-confidence".
        allow_partial: Accept differing key sets. Default: False.
        tiebreaker: Per-field vote tie rule, "first" (default) or
            "highest-confidence".
    """
    return FieldwiseStrategy(build_options(FieldwiseOptions, options))
