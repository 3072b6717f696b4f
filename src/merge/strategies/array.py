"""Array merges: concatenate list results from every branch."""

from collections.abc import Callable, Sequence
from typing import Any

from pydantic import Field

from src.core.exceptions import MergeError
from src.merge.base import (
    BaseMergeStrategy,
    IndexedResult,
    average_confidence,
    build_options,
    clamp_unit,
    values_equal,
)
from src.merge.types import MergeOptions, MergeProvenance, MergeResult, RejectedValue


class ConcatOptions(MergeOptions):
    """Options for concat.

    Attributes:
        remove_duplicates: Keep only the first occurrence of equal items.
        equality_fn: Item equality. Default: ==.
        max_items: Keep at most this many items, preferring items from
            higher-confidence branches.
    """

    remove_duplicates: bool = True
    equality_fn: Callable[[Any, Any], bool] | None = None
    max_items: int | None = Field(default=None, ge=0)


class ConcatStrategy(BaseMergeStrategy[ConcatOptions]):
    """Flatten list results in branch order."""

    name = "array-concat"

    def _equal(self, a: Any, b: Any) -> bool:
        equality_fn = self.options.equality_fn
        return bool(equality_fn(a, b)) if equality_fn else values_equal(a, b)

    def reduce(
        self,
        valid: list[IndexedResult],
        rejected: list[RejectedValue],
    ) -> MergeResult[list[Any]]:
        items: list[tuple[Any, float]] = []
        for index, owned in valid:
            if isinstance(owned.value, (str, bytes)) or not isinstance(
                owned.value, Sequence
            ):
                raise MergeError(
                    f"Array concat requires list values, branch {index} "
                    f"returned {type(owned.value).__name__}",
                    strategy=self.name,
                )
            items.extend((item, owned.confidence) for item in owned.value)

        if self.options.remove_duplicates:
            unique: list[tuple[Any, float]] = []
            for item, confidence in items:
                if not any(self._equal(seen, item) for seen, _ in unique):
                    unique.append((item, confidence))
        else:
            unique = list(items)

        total = len(items)
        consensus = clamp_unit((total - len(unique)) / total) if total else 0.0

        max_items = self.options.max_items
        if max_items is not None and len(unique) > max_items:
            # sorted() is stable: equal confidence keeps branch order
            unique = sorted(unique, key=lambda entry: entry[1], reverse=True)
            unique = unique[:max_items]

        return MergeResult(
            value=self.owned([item for item, _ in unique], average_confidence(valid)),
            provenance=MergeProvenance(
                contributing_branches=[index for index, _ in valid],
                rejected_values=rejected,
                consensus_level=consensus,
            ),
            conflicts=[],
        )


def concat(**options: Any) -> ConcatStrategy:
    """Create an array concatenation strategy.

    Keyword Args:
        min_confidence: Reject results below this confidence. Default: 0.
        remove_duplicates: Drop repeated items. Default: True.
        equality_fn: Custom item equality. Default: ==.
        max_items: Cap on returned items. Default: unlimited.

    Example:
        >>> concat().merge([
        ...     create_owned(["tag1", "tag2"], "tags"),
        ...     create_owned(["tag2", "tag3"], "tags"),
        ... ]).value.value
        ['tag1', 'tag2', 'tag3']
    """
    return ConcatStrategy(build_options(ConcatOptions, options))
