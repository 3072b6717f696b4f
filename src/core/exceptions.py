"""Custom exceptions for fork-merge-engine.

All custom exceptions end in "Error" and carry a machine-readable
error code alongside the human-readable message.

Exception Hierarchy:
    ForkMergeError (base)
    └── NonRetriableError (permanent errors)
        ├── ConfigurationError
        ├── ValidationError
        ├── SchemaConflictError
        └── MergeError
            ├── EmptyResultsError
            ├── AllResultsRejectedError
            ├── FieldMismatchError
            ├── CustomMergeFailedError
            ├── InvalidMetricError
            ├── ConsensusImpossibleError
            └── ConsensusNotMetError

Errors raised by fork branches or by a warmup executor are not wrapped;
they reach the caller exactly as the branch raised them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """Error codes for fork-merge-engine exceptions."""

    # Base error
    FORK_MERGE_ERROR = "FORK_MERGE_ERROR"

    # Configuration / validation
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SCHEMA_CONFLICT = "SCHEMA_CONFLICT"

    # Merge
    MERGE_FAILED = "MERGE_FAILED"
    EMPTY_RESULTS = "EMPTY_RESULTS"
    ALL_RESULTS_REJECTED = "ALL_RESULTS_REJECTED"
    FIELD_MISMATCH = "FIELD_MISMATCH"
    CUSTOM_MERGE_FAILED = "CUSTOM_MERGE_FAILED"
    INVALID_METRIC = "INVALID_METRIC"
    CONSENSUS_IMPOSSIBLE = "CONSENSUS_IMPOSSIBLE"
    CONSENSUS_NOT_MET = "CONSENSUS_NOT_MET"


# =============================================================================
# Base Exception
# =============================================================================


class ForkMergeError(Exception):
    """Base exception for all fork-merge-engine errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.FORK_MERGE_ERROR,
        **kwargs: Any,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )

        # Set any additional attributes from kwargs
        for key, value in kwargs.items():
            setattr(self, key, value)


class NonRetriableError(ForkMergeError):
    """Base class for permanent errors that should not be retried.

    Configuration and merge errors are deterministic for a given input,
    so retrying the same call cannot change the outcome.
    """

    pass


# =============================================================================
# Configuration & Validation
# =============================================================================


class ConfigurationError(NonRetriableError):
    """Strategy or fork options are invalid.

    Attributes:
        setting: Name of the problematic option.
        value: The rejected value.
    """

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            **kwargs,
        )
        self.setting = setting
        self.value = value


class ValidationError(NonRetriableError):
    """A value failed validation (e.g. confidence outside [0, 1]).

    Attributes:
        field: Name of the invalid field.
        value: The invalid value.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            **kwargs,
        )
        self.field = field
        self.value = value


class SchemaConflictError(NonRetriableError):
    """Fork branches declare different output shapes and the fork forbids it.

    Attributes:
        conflicting_branch_groups: Branch indices grouped by shape signature.
    """

    def __init__(
        self,
        message: str,
        conflicting_branch_groups: list[list[int]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            error_code=ErrorCode.SCHEMA_CONFLICT,
            **kwargs,
        )
        self.conflicting_branch_groups = conflicting_branch_groups or []


# =============================================================================
# Merge Exceptions
# =============================================================================


class MergeError(NonRetriableError):
    """Base class for failures inside a merge strategy.

    Attributes:
        strategy: Name of the strategy that failed.
    """

    def __init__(
        self,
        message: str,
        strategy: str | None = None,
        error_code: str | ErrorCode = ErrorCode.MERGE_FAILED,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code=error_code, **kwargs)
        self.strategy = strategy


class EmptyResultsError(MergeError):
    """Merge was called with no results."""

    def __init__(
        self,
        message: str = "Cannot merge empty results array",
        strategy: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            strategy=strategy,
            error_code=ErrorCode.EMPTY_RESULTS,
            **kwargs,
        )


class AllResultsRejectedError(MergeError):
    """Every result was filtered out before reduction.

    Attributes:
        reason: The rejecting condition ("confidence below threshold",
            "outlier detected").
    """

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        strategy: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            strategy=strategy,
            error_code=ErrorCode.ALL_RESULTS_REJECTED,
            **kwargs,
        )
        self.reason = reason


class FieldMismatchError(MergeError):
    """Fieldwise merge received objects with different key sets.

    Attributes:
        branch: Original index of the first mismatching branch.
    """

    def __init__(
        self,
        message: str,
        branch: int | None = None,
        strategy: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            strategy=strategy,
            error_code=ErrorCode.FIELD_MISMATCH,
            **kwargs,
        )
        self.branch = branch


class CustomMergeFailedError(MergeError):
    """A caller-supplied reduce function raised."""

    def __init__(
        self,
        message: str,
        strategy: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            strategy=strategy,
            error_code=ErrorCode.CUSTOM_MERGE_FAILED,
            **kwargs,
        )


class InvalidMetricError(MergeError):
    """A caller-supplied confidence/consensus callback left [0, 1].

    Attributes:
        metric: "confidence" or "consensus".
        value: The out-of-range value.
    """

    def __init__(
        self,
        message: str,
        metric: str | None = None,
        value: float | None = None,
        strategy: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            strategy=strategy,
            error_code=ErrorCode.INVALID_METRIC,
            **kwargs,
        )
        self.metric = metric
        self.value = value


class ConsensusImpossibleError(MergeError):
    """k exceeds the number of results, so consensus can never be reached.

    Attributes:
        k: Required number of agreeing branches.
        total: Number of results provided.
    """

    def __init__(
        self,
        k: int,
        total: int,
        strategy: str | None = None,
        **kwargs: Any,
    ) -> None:
        message = (
            f"Consensus requirement impossible: k={k} "
            f"but only {total} results provided"
        )
        super().__init__(
            message,
            strategy=strategy,
            error_code=ErrorCode.CONSENSUS_IMPOSSIBLE,
            **kwargs,
        )
        self.k = k
        self.total = total


class ConsensusNotMetError(MergeError):
    """Fewer than k branches agreed and on_failure="error".

    Attributes:
        k: Required number of agreeing branches.
        max_agreement: Size of the largest agreeing group.
    """

    def __init__(
        self,
        k: int,
        max_agreement: int,
        strategy: str | None = None,
        **kwargs: Any,
    ) -> None:
        message = (
            f"Consensus requirement not met: needed {k} agreeing branches, "
            f"got max {max_agreement}"
        )
        super().__init__(
            message,
            strategy=strategy,
            error_code=ErrorCode.CONSENSUS_NOT_MET,
            **kwargs,
        )
        self.k = k
        self.max_agreement = max_agreement
