"""Owned result envelope.

Every branch result and every merge result travels as an ``Owned`` value:
the payload plus the confidence the producer assigns to it, an opaque scope
tag and an audit-only trace id. Instances are immutable once constructed.
"""

import math
import uuid
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from src.core.constants import DEFAULT_CONFIDENCE
from src.core.exceptions import ValidationError


T = TypeVar("T")


def generate_trace_id(prefix: str = "trace") -> str:
    """Return a fresh audit trace id such as ``trace-1f2e3d4c5b6a``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _validate_confidence(confidence: float) -> None:
    if (
        isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or math.isnan(confidence)
        or not 0.0 <= confidence <= 1.0
    ):
        raise ValidationError(
            f"Confidence must be between 0 and 1, got {confidence}",
            field="confidence",
            value=confidence,
        )


@dataclass(frozen=True)
class Owned(Generic[T]):
    """Immutable value produced by a branch or a merge.

    Attributes:
        value: The payload.
        confidence: Producer-assigned confidence in [0, 1].
        scope: Opaque scope tag. Merges stamp "merged".
        trace_id: Audit identifier; never used for logic.
    """

    value: T
    confidence: float
    scope: str
    trace_id: str

    def __post_init__(self) -> None:
        _validate_confidence(self.confidence)


def create_owned(
    value: T,
    scope: str,
    confidence: float = DEFAULT_CONFIDENCE,
    trace_id: str | None = None,
) -> Owned[T]:
    """Wrap a value in an Owned envelope.

    Args:
        value: The payload.
        scope: Scope tag of the producing context.
        confidence: Confidence in [0, 1]. Default: 1.0.
        trace_id: Optional trace id; generated when omitted.

    Returns:
        New Owned instance.

    Raises:
        ValidationError: If confidence is outside [0, 1].

    Example:
        >>> owned = create_owned("urgent", scope="triage", confidence=0.9)
        >>> owned.value, owned.confidence
        ('urgent', 0.9)
    """
    return Owned(
        value=value,
        confidence=confidence,
        scope=scope,
        trace_id=trace_id or generate_trace_id(),
    )


def is_owned(obj: Any) -> bool:
    """Return True if obj is an Owned envelope."""
    return isinstance(obj, Owned)
