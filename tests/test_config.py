"""
Tests for application configuration.

These tests verify that:
1. Default values are set correctly
2. Environment variables override defaults
"""

import pytest
from pydantic import ValidationError


class TestSettings:
    """Test the Settings configuration class."""

    def test_default_values(self, monkeypatch):
        """Settings should have sensible defaults when no env vars are set."""
        for name in (
            "JWT_ALGORITHM",
            "DEBUG",
            "LOG_LEVEL",
            "DELIVERY_MODE",
            "DELIVERY_MAX_ATTEMPTS",
            "DELIVERY_BACKOFF_BASE_SECONDS",
            "EVALUATION_INTERVAL_SECONDS",
        ):
            monkeypatch.delenv(name, raising=False)

        # Import inside test to get fresh instance
        from apiwatch.core.config import Settings

        settings = Settings(_env_file=None)

        assert settings.jwt_algorithm == "HS256"
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert settings.delivery_mode == "inline"
        assert settings.delivery_max_attempts == 3
        assert settings.delivery_backoff_base_seconds == 60
        assert settings.evaluation_interval_seconds == 60

    def test_database_url_format(self, monkeypatch):
        """Database URL should use the correct driver."""
        monkeypatch.delenv("DATABASE_URL", raising=False)
        from apiwatch.core.config import Settings

        settings = Settings(_env_file=None)

        # Should use psycopg (not psycopg2)
        assert "psycopg" in settings.database_url
        assert settings.database_url.startswith("postgresql")

    def test_env_override(self, monkeypatch):
        """Environment variables should override default values."""
        monkeypatch.setenv("JWT_SECRET", "my-test-secret")
        monkeypatch.setenv("DELIVERY_MODE", "queue")
        monkeypatch.setenv("SMTP_PORT", "2525")

        from apiwatch.core.config import Settings

        settings = Settings(_env_file=None)

        assert settings.jwt_secret == "my-test-secret"
        assert settings.delivery_mode == "queue"
        assert settings.smtp_port == 2525

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_max_attempts_must_be_positive(self, monkeypatch, value):
        """Deliveries start at attempt 1, so fewer than 1 attempt is invalid."""
        monkeypatch.setenv("DELIVERY_MAX_ATTEMPTS", value)

        from apiwatch.core.config import Settings

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_invalid_delivery_mode(self, monkeypatch):
        monkeypatch.setenv("DELIVERY_MODE", "carrier-pigeon")

        from apiwatch.core.config import Settings

        with pytest.raises(ValidationError):
            Settings(_env_file=None)
