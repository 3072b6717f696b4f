"""Categorical merges: confidence-weighted voting.

Example:
    >>> strategy = weighted_vote()
    >>> result = strategy.merge([
    ...     create_owned("urgent", "triage", 0.9),
    ...     create_owned("normal", "triage", 0.6),
    ...     create_owned("urgent", "triage", 0.8),
    ... ])
    >>> result.value.value, round(result.value.confidence, 3)
    ('urgent', 0.739)
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.merge.base import BaseMergeStrategy, IndexedResult, build_options, values_equal
from src.merge.types import (
    ConflictResolution,
    MergeConflict,
    MergeOptions,
    MergeProvenance,
    MergeResult,
    RejectedValue,
)


class TieBreaker(str, Enum):
    """How groups with equal total weight are ranked."""

    HIGHEST_CONFIDENCE = "highest-confidence"
    FIRST = "first"


class WeightedVoteOptions(MergeOptions):
    """Options for weighted_vote.

    Attributes:
        tiebreaker: "highest-confidence" picks the tied group whose single
            strongest member is stronger; "first" keeps the earliest group.
    """

    tiebreaker: TieBreaker = TieBreaker.HIGHEST_CONFIDENCE


@dataclass
class VoteGroup:
    """Branches that produced the same value.

    Attributes:
        value: The shared value.
        members: (original index, confidence) of each member branch.
    """

    value: Any
    members: list[tuple[int, float]] = field(default_factory=list)

    @property
    def weight(self) -> float:
        return sum(confidence for _, confidence in self.members)

    @property
    def max_confidence(self) -> float:
        return max(confidence for _, confidence in self.members)

    @property
    def branches(self) -> list[int]:
        return [index for index, _ in self.members]


def group_by_value(entries: Iterable[tuple[int, Any, float]]) -> list[VoteGroup]:
    """Group (index, value, confidence) entries by value equality.

    Groups keep first-seen order; unhashable values are supported.
    """
    groups: list[VoteGroup] = []
    for index, value, confidence in entries:
        for group in groups:
            if values_equal(group.value, value):
                group.members.append((index, confidence))
                break
        else:
            groups.append(VoteGroup(value=value, members=[(index, confidence)]))
    return groups


def pick_winner(groups: list[VoteGroup], tiebreaker: TieBreaker) -> VoteGroup:
    """Heaviest group; ties settled by tiebreaker."""
    winner = groups[0]
    for group in groups[1:]:
        if math.isclose(group.weight, winner.weight, rel_tol=1e-9, abs_tol=1e-12):
            if (
                tiebreaker is TieBreaker.HIGHEST_CONFIDENCE
                and group.max_confidence > winner.max_confidence
            ):
                winner = group
        elif group.weight > winner.weight:
            winner = group
    return winner


class WeightedVoteStrategy(BaseMergeStrategy[WeightedVoteOptions]):
    """Pick the value with the greatest summed confidence."""

    name = "weighted-vote"

    def reduce(
        self,
        valid: list[IndexedResult],
        rejected: list[RejectedValue],
    ) -> MergeResult[Any]:
        groups = group_by_value(
            (index, owned.value, owned.confidence) for index, owned in valid
        )
        winner = pick_winner(groups, self.options.tiebreaker)

        if len(valid) == 1:
            confidence = valid[0][1].confidence
            consensus = 1.0
        else:
            total_weight = sum(owned.confidence for _, owned in valid)
            confidence = winner.weight / total_weight if total_weight > 0 else 0.0
            consensus = confidence

        conflicts = []
        if len(groups) > 1:
            conflicts.append(
                MergeConflict(
                    values=[group.value for group in groups],
                    resolution=ConflictResolution.VOTED,
                )
            )

        return MergeResult(
            value=self.owned(winner.value, confidence),
            provenance=MergeProvenance(
                contributing_branches=winner.branches,
                rejected_values=rejected,
                consensus_level=consensus,
            ),
            conflicts=conflicts,
        )


def weighted_vote(**options: Any) -> WeightedVoteStrategy:
    """Create a weighted-vote strategy.

    Keyword Args:
        min_confidence: Reject results below this confidence. Default: 0.
        tiebreaker: "highest-confidence" (default) or "first".
    """
    return WeightedVoteStrategy(build_options(WeightedVoteOptions, options))
