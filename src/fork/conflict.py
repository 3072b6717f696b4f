"""Shape conflict detection for cache-optimized forks.

Prefix caches are keyed on the exact request prefix, and a structured-output
request embeds its output shape in that prefix. Branches that ask for
different shapes therefore cannot share a warmed cache. This module groups
branches by an explicit shape signature and reports the groups.

Shape descriptors are supplied by the caller:
- str: used verbatim as the signature (e.g. a precomputed hash)
- pydantic BaseModel subclass: reduced to its canonical JSON schema
- mapping / sequence: canonical JSON with sorted keys
"""

import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from src.core.config import Settings, get_settings
from src.core.exceptions import ConfigurationError, SchemaConflictError
from src.core.logging import get_logger
from src.fork.types import SchemaConflictBehavior, SchemaConflictResult, coerce_enum


logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================


CONFLICT_SUGGESTIONS = [
    "Consider using a universal schema that covers all branches",
    "Use free-text generation with post-processing instead of structured output",
    "Accept that branches with different schemas won't share cache",
    "Split into separate fork calls grouped by schema",
]

CONFLICT_REMEDIES = (
    "Consider: (1) universal schema, (2) free-text generation + post-process, "
    "(3) accept no cache sharing"
)


# =============================================================================
# Signatures
# =============================================================================


def _is_model_class(shape: Any) -> bool:
    return isinstance(shape, type) and issubclass(shape, BaseModel)


def compute_shape_signature(shape: Any) -> str:
    """Reduce a shape descriptor to a comparable signature string.

    Args:
        shape: str, pydantic model class, mapping or sequence.

    Returns:
        Signature string; equal shapes yield equal signatures.

    Raises:
        ConfigurationError: If the descriptor type is not supported.

    Example:
        >>> compute_shape_signature({"b": "int", "a": "str"})
        '{"a":"str","b":"int"}'
    """
    if isinstance(shape, str):
        return shape
    if _is_model_class(shape):
        return json.dumps(
            shape.model_json_schema(), sort_keys=True, separators=(",", ":")
        )
    if isinstance(shape, (Mapping, Sequence)):
        try:
            return json.dumps(shape, sort_keys=True, separators=(",", ":"))
        except TypeError as e:
            raise ConfigurationError(
                f"Shape descriptor is not JSON-serializable: {e}",
                setting="shape",
                value=shape,
            ) from e
    raise ConfigurationError(
        f"Unsupported shape descriptor type: {type(shape).__name__}",
        setting="shape",
        value=shape,
    )


def _describe_shape(shape: Any) -> str | None:
    if _is_model_class(shape):
        return shape.__name__
    if isinstance(shape, Mapping):
        description = shape.get("description") or shape.get("title")
        return str(description) if description else None
    return None


def _group_by_signature(
    shapes: Sequence[Any], branch_indices: Sequence[int]
) -> list[list[tuple[int, Any]]]:
    groups: dict[str, list[tuple[int, Any]]] = {}
    for index, shape in zip(branch_indices, shapes):
        groups.setdefault(compute_shape_signature(shape), []).append((index, shape))
    return list(groups.values())


def _format_groups(groups: Iterable[list[int]]) -> str:
    return ", ".join(f"[{', '.join(str(i) for i in group)}]" for group in groups)


# =============================================================================
# Detection
# =============================================================================


def detect_schema_conflict(
    shapes: Sequence[Any],
    provider: str | None = None,
    branch_indices: Sequence[int] | None = None,
    settings: Settings | None = None,
) -> SchemaConflictResult:
    """Group branches by shape signature and report whether they differ.

    Args:
        shapes: One shape descriptor per participating branch.
        provider: Provider the branches target. Providers outside
            settings.prefix_cache_providers never conflict.
        branch_indices: Original branch index of each shape. Defaults to
            0..len(shapes)-1.
        settings: Settings override; defaults to get_settings().

    Returns:
        SchemaConflictResult describing the shape groups.
    """
    settings = settings or get_settings()
    if branch_indices is None:
        branch_indices = list(range(len(shapes)))

    if provider is not None and provider.lower() not in settings.prefix_cache_providers:
        return SchemaConflictResult(
            has_conflict=False,
            message=(
                "Schema conflict detection only applies to prefix-cache "
                f"providers ({', '.join(settings.prefix_cache_providers)})"
            ),
        )

    groups = _group_by_signature(shapes, branch_indices)
    if len(groups) <= 1:
        return SchemaConflictResult(
            has_conflict=False,
            message="All branches use compatible schemas",
        )

    branch_groups = [[index for index, _ in group] for group in groups]
    message = (
        f"{len(groups)} different schemas detected across {len(shapes)} branches. "
        "Different schemas in fork branches break prefix cache reuse. "
        f"Branches are grouped by schema: {_format_groups(branch_groups)}"
    )
    logger.debug(
        "Schema conflict detected",
        group_count=len(groups),
        branch_groups=branch_groups,
    )
    return SchemaConflictResult(
        has_conflict=True,
        message=message,
        conflicting_branch_groups=branch_groups,
        suggestions=list(CONFLICT_SUGGESTIONS),
    )


def handle_schema_conflict(
    result: SchemaConflictResult,
    behavior: SchemaConflictBehavior | str,
) -> str | None:
    """Apply the configured behavior to a detection result.

    Returns:
        Warning text for "warn", None for "allow" or when nothing conflicts.

    Raises:
        SchemaConflictError: For "error" when a conflict exists.
    """
    behavior = coerce_enum(SchemaConflictBehavior, behavior, "on_schema_conflict")
    if not result.has_conflict:
        return None

    if behavior is SchemaConflictBehavior.ERROR:
        raise SchemaConflictError(
            f"Schema conflict detected: {result.message}\n{CONFLICT_REMEDIES}",
            conflicting_branch_groups=result.conflicting_branch_groups,
        )
    if behavior is SchemaConflictBehavior.WARN:
        return f"Warning: {result.message}\n{CONFLICT_REMEDIES}"
    return None


def are_shapes_compatible(shapes: Sequence[Any]) -> bool:
    """Return True if every shape has the same signature."""
    if len(shapes) <= 1:
        return True
    first = compute_shape_signature(shapes[0])
    return all(compute_shape_signature(shape) == first for shape in shapes[1:])


def describe_shape_differences(shapes: Sequence[Any]) -> str:
    """Human-readable listing of shape groups, one line per group."""
    if not shapes:
        return "No schemas provided"
    if len(shapes) == 1:
        return "Only one schema provided"

    groups = _group_by_signature(shapes, list(range(len(shapes))))
    if len(groups) == 1:
        return "All schemas are identical"

    lines = []
    for group_number, group in enumerate(groups, start=1):
        indices = ", ".join(str(index) for index, _ in group)
        label = _describe_shape(group[0][1]) or f"Group {group_number}"
        lines.append(f"Branches [{indices}]: {label}")
    return "\n".join(lines)
