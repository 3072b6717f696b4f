"""Custom merges: caller-supplied reduction with validated metrics."""

from collections.abc import Callable
from typing import Any

from src.core.constants import DEFAULT_CUSTOM_CONSENSUS
from src.core.exceptions import CustomMergeFailedError, InvalidMetricError
from src.merge.base import (
    BaseMergeStrategy,
    IndexedResult,
    average_confidence,
    build_options,
)
from src.merge.types import MergeOptions, MergeProvenance, MergeResult, RejectedValue
from src.models.owned import Owned


MetricFn = Callable[[list[Owned[Any]], Any], float]


class CustomOptions(MergeOptions):
    """Options for custom.

    Attributes:
        reduce_fn: Receives the accepted results, returns the merged value.
        calculate_confidence: (results, merged_value) -> confidence in [0, 1].
            Default: average input confidence.
        calculate_consensus: (results, merged_value) -> consensus in [0, 1].
            Default: 1.0.
    """

    reduce_fn: Callable[[list[Owned[Any]]], Any]
    calculate_confidence: MetricFn | None = None
    calculate_consensus: MetricFn | None = None


class CustomStrategy(BaseMergeStrategy[CustomOptions]):
    """Delegate reduction to a caller-supplied function."""

    name = "custom"

    def _metric(self, metric: str, value: float) -> float:
        if (
            isinstance(value, bool)
            or not isinstance(value, (int, float))
            or not 0.0 <= value <= 1.0
        ):
            raise InvalidMetricError(
                f"Custom calculate_{metric} returned invalid value: {value} "
                "(must be 0-1)",
                metric=metric,
                value=value,
                strategy=self.name,
            )
        return float(value)

    def reduce(
        self,
        valid: list[IndexedResult],
        rejected: list[RejectedValue],
    ) -> MergeResult[Any]:
        results = [owned for _, owned in valid]
        try:
            merged_value = self.options.reduce_fn(results)
        except Exception as e:
            raise CustomMergeFailedError(
                f"Custom merge function failed: {e}",
                strategy=self.name,
            ) from e

        if self.options.calculate_confidence is not None:
            confidence = self._metric(
                "confidence", self.options.calculate_confidence(results, merged_value)
            )
        else:
            confidence = average_confidence(valid)

        if self.options.calculate_consensus is not None:
            consensus = self._metric(
                "consensus", self.options.calculate_consensus(results, merged_value)
            )
        else:
            consensus = DEFAULT_CUSTOM_CONSENSUS

        return MergeResult(
            value=self.owned(merged_value, confidence),
            provenance=MergeProvenance(
                contributing_branches=[index for index, _ in valid],
                rejected_values=rejected,
                consensus_level=consensus,
            ),
            conflicts=[],
        )


def custom(
    reduce_fn: Callable[[list[Owned[Any]]], Any],
    calculate_confidence: MetricFn | None = None,
    calculate_consensus: MetricFn | None = None,
    **options: Any,
) -> CustomStrategy:
    """Create a strategy around a caller-supplied reduce function.

    Example:
        >>> longest = custom(lambda results: max((r.value for r in results), key=len))
        >>> longest.merge([create_owned("a", "s"), create_owned("abc", "s")]).value.value
        'abc'
    """
    return CustomStrategy(
        build_options(
            CustomOptions,
            {
                "reduce_fn": reduce_fn,
                "calculate_confidence": calculate_confidence,
                "calculate_consensus": calculate_consensus,
                **options,
            },
        )
    )
