"""Merge engine: reduce fork results into one auditable decision.

Strategies are available per family (``categorical.weighted_vote``) and
flat (``weighted_vote``).
"""

from src.merge.base import BaseMergeStrategy
from src.merge.merge import merge
from src.merge.strategies import array, categorical, consensus, continuous, custom, objects
from src.merge.strategies.array import ConcatOptions, ConcatStrategy, concat
from src.merge.strategies.categorical import (
    TieBreaker,
    WeightedVoteOptions,
    WeightedVoteStrategy,
    weighted_vote,
)
from src.merge.strategies.consensus import (
    ConsensusFailureMode,
    RequireConsensusOptions,
    RequireConsensusStrategy,
    require_consensus,
)
from src.merge.strategies.continuous import (
    WeightedAverageOptions,
    WeightedAverageStrategy,
    weighted_average,
)
from src.merge.strategies.custom import CustomOptions, CustomStrategy
from src.merge.strategies.objects import (
    FieldStrategy,
    FieldwiseOptions,
    FieldwiseStrategy,
    fieldwise,
)
from src.merge.types import (
    ConflictResolution,
    MergeConflict,
    MergeOptions,
    MergeProvenance,
    MergeResult,
    MergeStrategy,
    RejectedValue,
    WeightedAverageResult,
)

custom_merge = custom.custom

__all__ = [
    # Entry point
    "merge",
    # Families
    "array",
    "categorical",
    "consensus",
    "continuous",
    "custom",
    "objects",
    # Factories
    "concat",
    "custom_merge",
    "fieldwise",
    "require_consensus",
    "weighted_average",
    "weighted_vote",
    # Strategies and options
    "BaseMergeStrategy",
    "ConcatOptions",
    "ConcatStrategy",
    "ConsensusFailureMode",
    "CustomOptions",
    "CustomStrategy",
    "FieldStrategy",
    "FieldwiseOptions",
    "FieldwiseStrategy",
    "RequireConsensusOptions",
    "RequireConsensusStrategy",
    "TieBreaker",
    "WeightedAverageOptions",
    "WeightedAverageStrategy",
    "WeightedVoteOptions",
    "WeightedVoteStrategy",
    # Types
    "ConflictResolution",
    "MergeConflict",
    "MergeOptions",
    "MergeProvenance",
    "MergeResult",
    "MergeStrategy",
    "RejectedValue",
    "WeightedAverageResult",
]
