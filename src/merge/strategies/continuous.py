"""Continuous merges: confidence-weighted averaging with outlier rejection."""

import math
from typing import Any

from pydantic import Field

from src.core.constants import DISPERSION_PENALTY_WEIGHT
from src.core.exceptions import AllResultsRejectedError, MergeError
from src.merge.base import BaseMergeStrategy, IndexedResult, build_options, clamp_unit
from src.merge.types import (
    ConflictResolution,
    MergeConflict,
    MergeOptions,
    MergeProvenance,
    MergeResult,
    RejectedValue,
    WeightedAverageResult,
)


class WeightedAverageOptions(MergeOptions):
    """Options for weighted_average.

    Attributes:
        outlier_threshold: Drop values more than this many standard
            deviations from the mean. 0 disables outlier detection.
    """

    outlier_threshold: float = Field(default=0.0, ge=0.0)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def _population_stddev(values: list[float]) -> float:
    mean = _mean(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


class WeightedAverageStrategy(BaseMergeStrategy[WeightedAverageOptions]):
    """Average numeric values weighted by confidence.

    Inputs may be numbers or WeightedAverageResult values from an earlier
    weighted-average merge, so merges chain.
    """

    name = "weighted-average"

    def _numeric(self, index: int, value: Any) -> float:
        if isinstance(value, WeightedAverageResult):
            return value.value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MergeError(
                f"Weighted average requires numeric values, branch {index} "
                f"returned {type(value).__name__}",
                strategy=self.name,
            )
        return float(value)

    def _reject_outliers(
        self,
        numeric: list[tuple[int, Any, float]],
        rejected: list[RejectedValue],
    ) -> list[tuple[int, Any, float]]:
        threshold = self.options.outlier_threshold
        if threshold <= 0 or len(numeric) < 3:
            return numeric

        values = [v for _, _, v in numeric]
        mean = _mean(values)
        stddev = _population_stddev(values)
        if stddev == 0:
            return numeric

        survivors = []
        for index, owned, value in numeric:
            deviations = abs(value - mean) / stddev
            if deviations > threshold:
                rejected.append(
                    RejectedValue(
                        branch=index,
                        value=owned.value,
                        reason=(
                            f"outlier detected ({deviations:.2f} "
                            "std deviations from mean)"
                        ),
                    )
                )
            else:
                survivors.append((index, owned, value))

        if not survivors:
            raise AllResultsRejectedError(
                "All results rejected: outlier detected",
                reason="outlier detected",
                strategy=self.name,
            )
        return survivors

    def reduce(
        self,
        valid: list[IndexedResult],
        rejected: list[RejectedValue],
    ) -> MergeResult[WeightedAverageResult]:
        numeric = [
            (index, owned, self._numeric(index, owned.value)) for index, owned in valid
        ]
        numeric = self._reject_outliers(numeric, rejected)

        values = [v for _, _, v in numeric]
        confidences = [owned.confidence for _, owned, _ in numeric]
        total_weight = sum(confidences)
        if total_weight > 0:
            average = sum(v * c for v, c in zip(values, confidences)) / total_weight
        else:
            average = _mean(values)

        dispersion = _population_stddev(values)
        avg_confidence = total_weight / len(numeric)

        cv = dispersion / abs(average) if average != 0 else 0.0
        penalty = min(cv, 1.0)
        confidence = avg_confidence * (1 - penalty * DISPERSION_PENALTY_WEIGHT)
        consensus = clamp_unit(1 - penalty)

        conflicts = []
        if dispersion > 0:
            conflicts.append(
                MergeConflict(values=values, resolution=ConflictResolution.AVERAGED)
            )

        return MergeResult(
            value=self.owned(
                WeightedAverageResult(value=average, dispersion=dispersion),
                confidence,
            ),
            provenance=MergeProvenance(
                contributing_branches=[index for index, _, _ in numeric],
                rejected_values=rejected,
                consensus_level=consensus,
            ),
            conflicts=conflicts,
        )


def weighted_average(**options: Any) -> WeightedAverageStrategy:
    """Create a weighted-average strategy.

    Keyword Args:
        min_confidence: Reject results below this confidence. Default: 0.
        outlier_threshold: Standard deviations beyond which a value is an
            outlier. Default: 0 (disabled). Needs at least 3 values.
    """
    return WeightedAverageStrategy(build_options(WeightedAverageOptions, options))
