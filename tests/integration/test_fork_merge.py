"""Fork → merge pipeline tests.

Branches run against child contexts, their results feed a merge strategy,
and the merged value carries the audit trail back to the caller.
"""

from __future__ import annotations

from typing import Any

import pytest

from src.core.constants import FORK_BRANCH_INDEX_KEY
from src.core.exceptions import ConsensusNotMetError, SchemaConflictError
from src.fork import BranchSpec, ForkOptions, create_warmup_executor, fork, register_warmup_executor
from src.merge import (
    concat,
    custom_merge,
    fieldwise,
    merge,
    require_consensus,
    weighted_average,
    weighted_vote,
)
from src.models.owned import create_owned


pytestmark = [pytest.mark.integration]


def answering(value: Any, confidence: float) -> Any:
    """Branch that asks the context, then reports value at confidence."""

    async def branch(child: Any) -> Any:
        echoed = await child.infer("label", value)
        return create_owned(echoed.value, scope=child.scope, confidence=confidence)

    return branch


# =============================================================================
# Pipelines
# =============================================================================


class TestForkThenMerge:
    """Each strategy family fed by a real fork."""

    async def test_triage_vote(self, ctx: Any) -> None:
        forked = await fork(
            ctx,
            ForkOptions(
                strategy="fast-parallel",
                branches=[
                    answering("urgent", 0.9),
                    answering("normal", 0.6),
                    answering("urgent", 0.8),
                ],
            ),
        )

        merged = merge(forked.results, weighted_vote())

        assert merged.value.value == "urgent"
        assert merged.value.confidence == pytest.approx(0.739, abs=1e-3)
        assert merged.provenance.contributing_branches == [0, 2]
        tagged = [call["options"]["metadata"][FORK_BRANCH_INDEX_KEY] for call in ctx.infer_calls]
        assert sorted(tagged) == [0, 1, 2]

    async def test_price_estimates_averaged(self, ctx: Any) -> None:
        forked = await fork(
            ctx,
            {
                "strategy": "fast-parallel",
                "branches": [answering(100, 0.9), answering(110, 0.8), answering(500, 0.9)],
            },
        )

        merged = merge(forked.results, weighted_average(outlier_threshold=1.0))

        assert merged.value.value.value == pytest.approx((100 * 0.9 + 110 * 0.8) / 1.7)
        assert [r.branch for r in merged.provenance.rejected_values] == [2]

    async def test_structured_reports_fieldwise(self, ctx: Any) -> None:
        reports = [
            {"sentiment": "positive", "priority": "high"},
            {"sentiment": "positive", "priority": "low"},
            {"sentiment": "negative", "priority": "high"},
        ]
        forked = await fork(
            ctx,
            ForkOptions(
                strategy="fast-parallel",
                branches=[answering(report, 0.8) for report in reports],
            ),
        )

        merged = merge(forked.results, fieldwise())

        assert merged.value.value == {"sentiment": "positive", "priority": "high"}
        assert {conflict.field for conflict in merged.conflicts} == {"sentiment", "priority"}

    async def test_tags_concatenated(self, ctx: Any) -> None:
        forked = await fork(
            ctx,
            ForkOptions(
                strategy="fast-parallel",
                branches=[
                    answering(["tag1", "tag2", "tag3"], 0.9),
                    answering(["tag2", "tag4"], 0.9),
                    answering(["tag1", "tag5"], 0.9),
                ],
            ),
        )

        merged = merge(forked.results, concat())

        assert sorted(merged.value.value) == ["tag1", "tag2", "tag3", "tag4", "tag5"]

    async def test_custom_longest_summary(self, ctx: Any) -> None:
        forked = await fork(
            ctx,
            ForkOptions(
                strategy="fast-parallel",
                branches=[answering("brief", 0.7), answering("a longer summary", 0.5)],
            ),
        )

        merged = merge(
            forked.results,
            custom_merge(lambda results: max((r.value for r in results), key=len)),
        )

        assert merged.value.value == "a longer summary"
        assert merged.value.confidence == pytest.approx(0.6)

    async def test_consensus_gate(self, ctx: Any) -> None:
        forked = await fork(
            ctx,
            ForkOptions(
                strategy="fast-parallel",
                branches=[answering("approve", 0.9), answering("reject", 0.9)],
            ),
        )

        with pytest.raises(ConsensusNotMetError):
            merge(forked.results, require_consensus(2, on_failure="error"))


class TestCacheOptimizedPipelines:
    """Warmup and schema checks ahead of the merge."""

    async def test_explicit_warmup_then_vote(self, ctx: Any) -> None:
        warmups: list[Any] = []

        async def warm(parent: Any) -> dict[str, int]:
            warmups.append(parent)
            return {"token_cost": 120, "cache_created_tokens": 100}

        register_warmup_executor(create_warmup_executor(warm))
        forked = await fork(
            ctx,
            ForkOptions(
                strategy="cache-optimized",
                warmup="explicit",
                branches=[answering("yes", 0.9), answering("yes", 0.7)],
            ),
        )

        merged = merge(forked.results, weighted_vote())

        assert warmups == [ctx]
        assert forked.cache_stats.warmup_cost == 120
        assert forked.warnings == []
        assert merged.value.value == "yes"
        assert merged.value.confidence == pytest.approx(1.0)

    async def test_degraded_fork_still_merges(self, ctx: Any) -> None:
        forked = await fork(
            ctx,
            ForkOptions(
                strategy="cache-optimized",
                warmup="explicit",
                branches=[answering(1.0, 0.5), answering(3.0, 0.5)],
            ),
        )

        merged = merge(forked.results, weighted_average())

        assert len(forked.warnings) == 1
        assert merged.value.value.value == pytest.approx(2.0)

    async def test_schema_conflict_blocks_fork(self, ctx: Any) -> None:
        with pytest.raises(SchemaConflictError):
            await fork(
                ctx,
                ForkOptions(
                    strategy="cache-optimized",
                    warmup="none",
                    on_schema_conflict="error",
                    provider="anthropic",
                    branches=[
                        BranchSpec(run=answering("a", 0.9), shape={"risk": "string"}),
                        BranchSpec(run=answering("b", 0.9), shape={"summary": "string"}),
                    ],
                ),
            )

        assert ctx.infer_calls == []
