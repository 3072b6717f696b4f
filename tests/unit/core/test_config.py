"""Tests for core configuration module.

Tests verify:
- Settings loads FORKMERGE_* environment variables
- Validation fails with clear errors on invalid values
- get_settings() is a cached singleton
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError


class TestSettingsDefaults:
    """Test Settings class default values."""

    def test_defaults(self) -> None:
        """Defaults match the documented values."""
        from src.core.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.service_name == "fork-merge-engine"
        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert settings.default_warmup == "explicit"
        assert settings.default_on_schema_conflict == "warn"
        assert settings.prefix_cache_providers == ["anthropic"]
        assert settings.tracing_enabled is False
        assert settings.otlp_endpoint is None


class TestSettingsFromEnvironment:
    """Test loading from FORKMERGE_* variables."""

    def test_reads_prefixed_variables(self) -> None:
        """FORKMERGE_ prefixed variables override defaults."""
        from src.core.config import Settings

        env = {
            "FORKMERGE_DEFAULT_WARMUP": "first-branch",
            "FORKMERGE_DEFAULT_ON_SCHEMA_CONFLICT": "error",
            "FORKMERGE_TRACING_ENABLED": "true",
            "FORKMERGE_OTLP_ENDPOINT": "http://localhost:4317",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()

        assert settings.default_warmup == "first-branch"
        assert settings.default_on_schema_conflict == "error"
        assert settings.tracing_enabled is True
        assert settings.otlp_endpoint == "http://localhost:4317"

    def test_unprefixed_variables_ignored(self) -> None:
        """Variables without the prefix do not leak in."""
        from src.core.config import Settings

        with patch.dict(os.environ, {"LOG_LEVEL": "DEBUG"}, clear=True):
            settings = Settings()
        assert settings.log_level == "INFO"

    def test_providers_parsed_from_json_and_normalized(self) -> None:
        """Provider list is JSON in the environment and lowercased."""
        from src.core.config import Settings

        env = {"FORKMERGE_PREFIX_CACHE_PROVIDERS": '["Anthropic", " Bedrock "]'}
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()
        assert settings.prefix_cache_providers == ["anthropic", "bedrock"]


class TestSettingsValidation:
    """Test validation errors."""

    def test_log_level_is_uppercased(self) -> None:
        """Lowercase log level is normalized."""
        from src.core.config import Settings

        with patch.dict(os.environ, {"FORKMERGE_LOG_LEVEL": "debug"}, clear=True):
            settings = Settings()
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level_rejected(self) -> None:
        """Unknown log level raises ValidationError."""
        from src.core.config import Settings

        with patch.dict(os.environ, {"FORKMERGE_LOG_LEVEL": "VERBOSE"}, clear=True):
            with pytest.raises(ValidationError, match="log_level"):
                Settings()

    def test_invalid_warmup_rejected(self) -> None:
        """Unknown warmup strategy raises ValidationError."""
        from src.core.config import Settings

        with patch.dict(os.environ, {"FORKMERGE_DEFAULT_WARMUP": "eager"}, clear=True):
            with pytest.raises(ValidationError):
                Settings()


class TestGetSettings:
    """Test get_settings() singleton."""

    def test_returns_same_instance(self) -> None:
        """get_settings() is cached."""
        from src.core.config import get_settings

        assert get_settings() is get_settings()

    def test_cache_clear_reloads(self) -> None:
        """cache_clear() picks up new environment values."""
        from src.core.config import get_settings

        with patch.dict(os.environ, {"FORKMERGE_DEFAULT_WARMUP": "none"}, clear=True):
            get_settings.cache_clear()
            assert get_settings().default_warmup == "none"
        get_settings.cache_clear()
