"""Branch child contexts.

A fork never hands its parent context to a branch directly. Each branch
gets a ChildContext that shares the parent's scope and delegates inference
and bridging to it, while keeping its own view of cache segments.
"""

from typing import Any, Protocol, runtime_checkable

from src.core.constants import FORK_BRANCH_INDEX_KEY
from src.models.owned import Owned


# =============================================================================
# Type Definitions
# =============================================================================


@runtime_checkable
class Context(Protocol):
    """Protocol for the execution context branches run against.

    Supplied by the caller; opaque to the orchestrator beyond these members.
    """

    scope: str

    async def infer(
        self, shape: Any, input: Any, options: dict[str, Any] | None = None
    ) -> Owned[Any]:
        """Run one inference call and wrap its result."""
        ...

    def bridge(self, owned: Owned[Any]) -> Owned[Any]:
        """Bring a value from another scope into this one."""
        ...

    def use(self, owned: Owned[Any]) -> Any:
        """Unwrap a value owned by this scope."""
        ...


# =============================================================================
# ChildContext
# =============================================================================


class ChildContext:
    """Isolated per-branch view of a parent context.

    Cache segments exposed by the parent are copied when the child is
    created. Segments staged afterwards, by the parent or by sibling
    branches, are not visible here.
    """

    def __init__(self, parent: Context, branch_index: int) -> None:
        self._parent = parent
        self._branch_index = branch_index
        self._inherited_segments: tuple[Any, ...] = tuple(
            getattr(parent, "cache_segments", None) or ()
        )
        self._staged_segments: list[Any] = []

    @property
    def scope(self) -> str:
        return self._parent.scope

    @property
    def parent(self) -> Context:
        return self._parent

    @property
    def branch_index(self) -> int:
        return self._branch_index

    @property
    def cache_segments(self) -> list[Any]:
        """Segments inherited at fork time followed by this branch's own."""
        return [*self._inherited_segments, *self._staged_segments]

    def add_cache_segment(self, segment: Any) -> None:
        """Stage a cache segment visible only to this branch."""
        self._staged_segments.append(segment)

    async def infer(
        self, shape: Any, input: Any, options: dict[str, Any] | None = None
    ) -> Owned[Any]:
        """Delegate to the parent, tagging the call with the branch index."""
        call_options = dict(options or {})
        metadata = dict(call_options.get("metadata") or {})
        metadata[FORK_BRANCH_INDEX_KEY] = self._branch_index
        call_options["metadata"] = metadata
        return await self._parent.infer(shape, input, call_options)

    def bridge(self, owned: Owned[Any]) -> Owned[Any]:
        return self._parent.bridge(owned)

    def use(self, owned: Owned[Any]) -> Any:
        return self._parent.use(owned)

    def __repr__(self) -> str:
        return f"ChildContext(scope={self.scope!r}, branch_index={self._branch_index})"


def create_child_context(parent: Context, branch_index: int) -> ChildContext:
    """Create the isolated context a branch runs against."""
    return ChildContext(parent, branch_index)
