"""Shared constants for fork-merge-engine.

Centralizes the literal names and defaults used by the fork orchestrator
and the merge strategies so option models, settings and log events agree
on spelling.

Usage:
    from src.core.constants import MERGED_SCOPE, DEFAULT_WARMUP
"""

# =============================================================================
# Service Defaults
# =============================================================================

DEFAULT_SERVICE_NAME = "fork-merge-engine"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_ENVIRONMENT = "development"


# =============================================================================
# Fork Defaults
# =============================================================================

DEFAULT_WARMUP = "explicit"
DEFAULT_ON_SCHEMA_CONFLICT = "warn"

# Providers whose cache is keyed on the exact request prefix; a different
# output shape per branch means a different prefix and no cache reuse.
DEFAULT_PREFIX_CACHE_PROVIDERS = ("anthropic",)

# Metadata key attached to every inference call made from a fork branch
FORK_BRANCH_INDEX_KEY = "fork_branch_index"


# =============================================================================
# Merge Defaults
# =============================================================================

MERGED_SCOPE = "merged"
DEFAULT_CONFIDENCE = 1.0
DEFAULT_CUSTOM_CONSENSUS = 1.0

# Weight given to the coefficient of variation when penalizing confidence
# in the continuous weighted average (max 50% penalty).
DISPERSION_PENALTY_WEIGHT = 0.5
