"""Unit tests for the merge entry point and the public namespaces."""

import json
from collections.abc import Callable
from io import StringIO
from typing import Any

import pytest

import src.merge as merge_api
from src.core.exceptions import ConfigurationError, EmptyResultsError, MergeError
from src.core.logging import configure_logging, reset_logging
from src.merge import (
    MergeStrategy,
    WeightedAverageResult,
    concat,
    custom_merge,
    fieldwise,
    merge,
    require_consensus,
    weighted_average,
    weighted_vote,
)


@pytest.fixture
def log_stream() -> StringIO:
    reset_logging()
    stream = StringIO()
    configure_logging(level="INFO", stream=stream, force=True)
    return stream


def _events(stream: StringIO) -> list[dict[str, Any]]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


# =============================================================================
# merge()
# =============================================================================


class TestMergeEntryPoint:
    """merge(results, strategy) delegates and logs."""

    def test_delegates_to_strategy(self, owned_list: Any) -> None:
        merged = merge(owned_list(("a", 0.9), ("b", 0.2)), weighted_vote())
        assert merged.value.value == "a"

    def test_logs_completion(self, owned_list: Any, log_stream: StringIO) -> None:
        merge(owned_list(("a", 0.9), ("b", 0.2)), weighted_vote())

        completed = [e for e in _events(log_stream) if e["event"] == "Merge completed"]
        assert len(completed) == 1
        assert completed[0]["strategy"] == "weighted-vote"
        assert completed[0]["result_count"] == 2
        assert completed[0]["conflict_count"] == 1
        assert completed[0]["contributing_branches"] == [0]

    def test_failure_logged_and_reraised(self, log_stream: StringIO) -> None:
        with pytest.raises(EmptyResultsError, match="Cannot merge empty results array"):
            merge([], weighted_vote())

        failed = [e for e in _events(log_stream) if e["event"] == "Merge failed"]
        assert failed[0]["strategy"] == "weighted-vote"
        assert failed[0]["level"] == "warning"

    def test_accepts_any_strategy_object(self, owned_list: Any) -> None:
        class Longest:
            name = "longest"

            def merge(self, results: Any) -> Any:
                return custom_merge(lambda rs: max((r.value for r in rs), key=len)).merge(
                    results
                )

        strategy = Longest()

        assert isinstance(strategy, MergeStrategy)
        assert merge(owned_list(("a", 1.0), ("abc", 1.0)), strategy).value.value == "abc"


# =============================================================================
# Empty input and min_confidence, every strategy
# =============================================================================

STRATEGIES: dict[str, Callable[[], Any]] = {
    "weighted-vote": weighted_vote,
    "weighted-average": weighted_average,
    "fieldwise-merge": fieldwise,
    "array-concat": concat,
    "custom": lambda: custom_merge(lambda results: results[0].value),
    "require-consensus": lambda: require_consensus(1),
}


class TestSharedContract:
    """Behavior every strategy shares."""

    @pytest.mark.parametrize("name", sorted(STRATEGIES))
    def test_empty_input(self, name: str) -> None:
        strategy = STRATEGIES[name]()

        assert strategy.name == name
        with pytest.raises(EmptyResultsError) as exc_info:
            strategy.merge([])
        assert isinstance(exc_info.value, MergeError)
        assert exc_info.value.strategy == name

    @pytest.mark.parametrize(
        ("factory", "value"),
        [
            (weighted_vote, "x"),
            (weighted_average, 4.0),
            (fieldwise, {"k": "v"}),
            (concat, ["x"]),
        ],
    )
    def test_min_confidence_rejects_low(
        self, owned_list: Any, factory: Callable[..., Any], value: Any
    ) -> None:
        merged = factory(min_confidence=0.5).merge(owned_list((value, 0.9), (value, 0.2)))

        rejected = merged.provenance.rejected_values
        assert [r.branch for r in rejected] == [1]
        assert rejected[0].reason == "confidence below threshold (0.2 < 0.5)"
        assert merged.provenance.contributing_branches == [0]

    def test_invalid_min_confidence(self) -> None:
        with pytest.raises(ConfigurationError):
            weighted_vote(min_confidence=1.5)


class TestSingletonIdempotence:
    """A single result merges to itself."""

    @pytest.mark.parametrize(
        ("factory", "value"),
        [
            (weighted_vote, "urgent"),
            (fieldwise, {"risk": "low", "score": 3}),
            (lambda: fieldwise(field_strategy="first"), {"risk": "low"}),
            (concat, ["a", "b"]),
            (lambda: custom_merge(lambda results: results[0].value), {"any": ["thing"]}),
            (lambda: require_consensus(1), "approve"),
        ],
    )
    def test_value_and_confidence_preserved(
        self, make_owned: Any, factory: Callable[[], Any], value: Any
    ) -> None:
        strategy = factory()

        once = strategy.merge([make_owned(value, 0.8)])
        twice = strategy.merge([once.value])

        assert once.value.value == value
        assert once.value.confidence == pytest.approx(0.8)
        assert once.provenance.contributing_branches == [0]
        assert once.conflicts == []
        assert twice.value.value == value
        assert twice.value.confidence == pytest.approx(0.8)

    def test_weighted_average_singleton(self, make_owned: Any) -> None:
        strategy = weighted_average()

        once = strategy.merge([make_owned(42.0, 0.8)])
        twice = strategy.merge([once.value])

        assert isinstance(once.value.value, WeightedAverageResult)
        assert once.value.value.value == pytest.approx(42.0)
        assert once.value.value.dispersion == 0.0
        assert once.value.confidence == pytest.approx(0.8)
        assert twice.value.value.value == pytest.approx(42.0)
        assert twice.value.confidence == pytest.approx(0.8)


# =============================================================================
# Namespaces
# =============================================================================


class TestNamespaces:
    """Family and flat access reach the same factories."""

    def test_family_and_flat_equivalent(self) -> None:
        assert merge_api.categorical.weighted_vote is weighted_vote
        assert merge_api.continuous.weighted_average is weighted_average
        assert merge_api.objects.fieldwise is fieldwise
        assert merge_api.array.concat is concat
        assert merge_api.custom.custom is custom_merge
        assert merge_api.consensus.require_consensus is require_consensus

    def test_every_export_resolves(self) -> None:
        for name in merge_api.__all__:
            assert getattr(merge_api, name) is not None
