"""Tests for configuration."""

import pytest

from src.core.config import Settings, constants


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test default settings without any environment."""
    for name in ("SQLITE_DB_PATH", "ENABLE_SCHEDULER", "ENVIRONMENT", "DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.sqlite_db_path == "data/khomvg.db"
    assert settings.enable_scheduler is True
    assert settings.default_page_size == 20
    assert settings.max_page_size == 100
    assert settings.is_production is False


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that environment variables override defaults."""
    monkeypatch.setenv("SQLITE_DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("ENABLE_SCHEDULER", "false")
    monkeypatch.setenv("ENVIRONMENT", "Production")

    settings = Settings(_env_file=None)

    assert settings.sqlite_db_path == "/tmp/other.db"
    assert settings.enable_scheduler is False
    assert settings.is_production is True


def test_require_credential_with_valid_value() -> None:
    """Test require_credential returns value when credential is set."""
    settings = Settings(_env_file=None, logfire_token="token-123")

    assert settings.require_credential("logfire_token", "Logfire") == "token-123"


def test_require_credential_with_none_raises_error() -> None:
    """Test require_credential raises ValueError naming the environment variable."""
    settings = Settings(_env_file=None, logfire_token=None)

    with pytest.raises(ValueError, match="Logfire credential not configured. Set LOGFIRE_TOKEN"):
        settings.require_credential("logfire_token", "Logfire")


def test_reminder_constants() -> None:
    """Test reminder defaults stay within the accepted range."""
    assert constants.MAX_NOTIFY_BEFORE_DAYS == 30
    assert 0 <= constants.DAILY_REMINDER_HOUR < 24
