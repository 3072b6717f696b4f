"""Top-level merge entry point."""

from collections.abc import Sequence
from typing import Any

from src.core.logging import get_logger
from src.merge.types import MergeResult, MergeStrategy
from src.models.owned import Owned


logger = get_logger(__name__)


def merge(results: Sequence[Owned[Any]], strategy: MergeStrategy) -> MergeResult[Any]:
    """Reduce branch results with a strategy and log the outcome.

    Args:
        results: Branch results, typically ForkResult.results.
        strategy: Any object with ``name`` and ``merge(results)``.

    Returns:
        The strategy's MergeResult.

    Raises:
        MergeError: Whatever the strategy raises, unchanged.
    """
    try:
        result = strategy.merge(results)
    except Exception as e:
        logger.warning(
            "Merge failed",
            strategy=strategy.name,
            result_count=len(results),
            error=str(e),
        )
        raise

    logger.info(
        "Merge completed",
        strategy=strategy.name,
        result_count=len(results),
        contributing_branches=result.provenance.contributing_branches,
        rejected_count=len(result.provenance.rejected_values),
        conflict_count=len(result.conflicts),
        consensus_level=result.provenance.consensus_level,
        confidence=result.value.confidence,
    )
    return result
