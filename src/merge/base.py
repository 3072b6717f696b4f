"""Shared merge contract.

BaseMergeStrategy implements the steps every strategy shares:
1. Reject empty input
2. Drop results below min_confidence, recording them as rejected
3. Hand the surviving (original index, result) pairs to the strategy

Strategies only implement reduce().
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Generic, TypeVar

import pydantic

from src.core.constants import MERGED_SCOPE
from src.core.exceptions import (
    AllResultsRejectedError,
    ConfigurationError,
    EmptyResultsError,
)
from src.merge.types import MergeOptions, MergeResult, RejectedValue
from src.models.owned import Owned, generate_trace_id


OptionsT = TypeVar("OptionsT", bound=MergeOptions)

IndexedResult = tuple[int, Owned[Any]]


# =============================================================================
# Helpers
# =============================================================================


def build_options(options_cls: type[OptionsT], options: Mapping[str, Any]) -> OptionsT:
    """Validate keyword options into an options model.

    Raises:
        ConfigurationError: If any option is invalid.
    """
    try:
        return options_cls(**options)
    except pydantic.ValidationError as e:
        details = "; ".join(
            _strip_value_error(error["msg"]) for error in e.errors()
        )
        raise ConfigurationError(
            details,
            setting=options_cls.__name__,
            value=dict(options),
        ) from e


def _strip_value_error(message: str) -> str:
    prefix = "Value error, "
    return message[len(prefix):] if message.startswith(prefix) else message


def clamp_unit(value: float) -> float:
    """Clamp value into [0, 1]; NaN becomes 0."""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def average_confidence(results: Iterable[IndexedResult]) -> float:
    confidences = [owned.confidence for _, owned in results]
    if not confidences:
        return 0.0
    return sum(confidences) / len(confidences)


def values_equal(a: Any, b: Any) -> bool:
    """Structural equality; works for unhashable values.

    Booleans never equal numbers: True and 1 are different answers.
    """
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return bool(a == b)


# =============================================================================
# BaseMergeStrategy
# =============================================================================


class BaseMergeStrategy(ABC, Generic[OptionsT]):
    """Base class for merge strategies.

    Subclasses set ``name`` and implement reduce().
    """

    name: str = "base"

    def __init__(self, options: OptionsT) -> None:
        self._options = options

    @property
    def options(self) -> OptionsT:
        return self._options

    def merge(self, results: Sequence[Owned[Any]]) -> MergeResult[Any]:
        """Reduce results into one MergeResult.

        Raises:
            EmptyResultsError: If results is empty.
            AllResultsRejectedError: If every result is below min_confidence.
        """
        if not results:
            raise EmptyResultsError(strategy=self.name)
        valid, rejected = self.filter_by_confidence(results)
        return self.reduce(valid, rejected)

    def filter_by_confidence(
        self, results: Sequence[Owned[Any]]
    ) -> tuple[list[IndexedResult], list[RejectedValue]]:
        threshold = self._options.min_confidence
        valid: list[IndexedResult] = []
        rejected: list[RejectedValue] = []
        for index, owned in enumerate(results):
            if owned.confidence < threshold:
                rejected.append(
                    RejectedValue(
                        branch=index,
                        value=owned.value,
                        reason=(
                            "confidence below threshold "
                            f"({owned.confidence} < {threshold})"
                        ),
                    )
                )
            else:
                valid.append((index, owned))

        if not valid:
            raise AllResultsRejectedError(
                f"All results rejected: confidence below threshold ({threshold})",
                reason="confidence below threshold",
                strategy=self.name,
            )
        return valid, rejected

    @abstractmethod
    def reduce(
        self,
        valid: list[IndexedResult],
        rejected: list[RejectedValue],
    ) -> MergeResult[Any]:
        """Reduce the results that passed filtering.

        Args:
            valid: (original index, result) pairs, in input order. Never empty.
            rejected: Results already excluded; extend and return it.
        """
        ...

    def owned(self, value: Any, confidence: float) -> Owned[Any]:
        """Wrap a merged value: scope "merged", fresh trace id."""
        return Owned(
            value=value,
            confidence=clamp_unit(confidence),
            scope=MERGED_SCOPE,
            trace_id=generate_trace_id(f"merge-{self.name}"),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._options!r})"
