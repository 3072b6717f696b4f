"""Unit tests for shape conflict detection."""

import pytest
from pydantic import BaseModel

from src.core.config import Settings
from src.core.exceptions import ConfigurationError, SchemaConflictError
from src.fork.conflict import (
    CONFLICT_SUGGESTIONS,
    are_shapes_compatible,
    compute_shape_signature,
    describe_shape_differences,
    detect_schema_conflict,
    handle_schema_conflict,
)
from src.fork.types import SchemaConflictBehavior, SchemaConflictResult


# =============================================================================
# Fixtures
# =============================================================================


class RiskReport(BaseModel):
    """Risk analysis output."""

    risk: str
    score: float


class SummaryReport(BaseModel):
    """Executive summary output."""

    summary: str


RISK_SHAPE = {"type": "object", "properties": {"risk": {"type": "string"}}}
SUMMARY_SHAPE = {"type": "object", "properties": {"summary": {"type": "string"}}}


# =============================================================================
# Signatures
# =============================================================================


class TestComputeShapeSignature:
    """Test compute_shape_signature()."""

    def test_string_used_verbatim(self) -> None:
        assert compute_shape_signature("sha256:abc") == "sha256:abc"

    def test_mapping_key_order_irrelevant(self) -> None:
        assert compute_shape_signature({"a": 1, "b": 2}) == compute_shape_signature(
            {"b": 2, "a": 1}
        )

    def test_pydantic_model_uses_json_schema(self) -> None:
        assert compute_shape_signature(RiskReport) == compute_shape_signature(RiskReport)
        assert compute_shape_signature(RiskReport) != compute_shape_signature(SummaryReport)

    def test_unsupported_descriptor_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported shape descriptor"):
            compute_shape_signature(42)


# =============================================================================
# Detection
# =============================================================================


class TestDetectSchemaConflict:
    """Test detect_schema_conflict()."""

    def test_identical_shapes_no_conflict(self) -> None:
        result = detect_schema_conflict([RISK_SHAPE, dict(RISK_SHAPE), RISK_SHAPE])
        assert result.has_conflict is False
        assert result.conflicting_branch_groups == []
        assert result.suggestions == []

    def test_different_shapes_grouped(self) -> None:
        result = detect_schema_conflict([RISK_SHAPE, SUMMARY_SHAPE, RISK_SHAPE])

        assert result.has_conflict is True
        assert result.conflicting_branch_groups == [[0, 2], [1]]
        assert result.message.startswith("2 different schemas detected across 3 branches.")
        assert "Branches are grouped by schema: [0, 2], [1]" in result.message
        assert result.suggestions == CONFLICT_SUGGESTIONS
        assert len(result.suggestions) == 4

    def test_branch_indices_preserved(self) -> None:
        result = detect_schema_conflict(
            [RiskReport, SummaryReport], branch_indices=[1, 4]
        )
        assert result.conflicting_branch_groups == [[1], [4]]

    def test_non_prefix_cache_provider_never_conflicts(self) -> None:
        result = detect_schema_conflict([RISK_SHAPE, SUMMARY_SHAPE], provider="openai")
        assert result.has_conflict is False
        assert "only applies to prefix-cache providers" in result.message

    def test_provider_match_is_case_insensitive(self) -> None:
        result = detect_schema_conflict([RISK_SHAPE, SUMMARY_SHAPE], provider="Anthropic")
        assert result.has_conflict is True

    def test_configured_providers_used(self) -> None:
        settings = Settings(prefix_cache_providers=["bedrock"])
        result = detect_schema_conflict(
            [RISK_SHAPE, SUMMARY_SHAPE], provider="bedrock", settings=settings
        )
        assert result.has_conflict is True


# =============================================================================
# Behavior
# =============================================================================


class TestHandleSchemaConflict:
    """Test handle_schema_conflict()."""

    @pytest.fixture
    def conflict(self) -> SchemaConflictResult:
        return detect_schema_conflict([RISK_SHAPE, SUMMARY_SHAPE])

    def test_error_raises(self, conflict: SchemaConflictResult) -> None:
        with pytest.raises(SchemaConflictError, match="Schema conflict detected") as exc_info:
            handle_schema_conflict(conflict, "error")
        assert exc_info.value.conflicting_branch_groups == [[0], [1]]

    def test_warn_returns_message(self, conflict: SchemaConflictResult) -> None:
        message = handle_schema_conflict(conflict, SchemaConflictBehavior.WARN)
        assert message is not None
        assert message.startswith("Warning: 2 different schemas detected")
        assert "Consider: (1) universal schema" in message

    def test_allow_returns_none(self, conflict: SchemaConflictResult) -> None:
        assert handle_schema_conflict(conflict, "allow") is None

    @pytest.mark.parametrize("behavior", ["warn", "error", "allow"])
    def test_no_conflict_returns_none(self, behavior: str) -> None:
        assert handle_schema_conflict(SchemaConflictResult(has_conflict=False), behavior) is None

    def test_unknown_behavior_rejected(self, conflict: SchemaConflictResult) -> None:
        with pytest.raises(ConfigurationError, match="on_schema_conflict"):
            handle_schema_conflict(conflict, "ignore")


# =============================================================================
# Helpers
# =============================================================================


class TestCompatibilityHelpers:
    """Test are_shapes_compatible() and describe_shape_differences()."""

    def test_compatible(self) -> None:
        assert are_shapes_compatible([])
        assert are_shapes_compatible([RISK_SHAPE])
        assert are_shapes_compatible([RISK_SHAPE, dict(RISK_SHAPE)])
        assert not are_shapes_compatible([RISK_SHAPE, SUMMARY_SHAPE])

    def test_describe_edge_cases(self) -> None:
        assert describe_shape_differences([]) == "No schemas provided"
        assert describe_shape_differences([RISK_SHAPE]) == "Only one schema provided"
        assert describe_shape_differences([RISK_SHAPE, RISK_SHAPE]) == "All schemas are identical"

    def test_describe_groups(self) -> None:
        description = describe_shape_differences([RiskReport, SummaryReport, RiskReport])
        assert description.splitlines() == [
            "Branches [0, 2]: RiskReport",
            "Branches [1]: SummaryReport",
        ]

    def test_describe_unlabelled_groups(self) -> None:
        description = describe_shape_differences(["sig-a", "sig-b"])
        assert description.splitlines() == ["Branches [0]: Group 1", "Branches [1]: Group 2"]
