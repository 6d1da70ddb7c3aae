"""
tests/test_config.py -- Unit tests for core/config.py Settings.

Settings are built with _env_file=None so a developer's .env cannot leak in.
Environment variables are set with monkeypatch where the test needs them.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_debug_generates_secret_key(monkeypatch) -> None:
    monkeypatch.delenv("SECRET_KEY", raising=False)
    settings = Settings(_env_file=None, debug=True)
    assert len(settings.secret_key) >= 32


def test_production_requires_secret_key(monkeypatch) -> None:
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None, debug=False)


def test_short_secret_key_rejected() -> None:
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None, debug=True, secret_key="too-short")


def test_defaults() -> None:
    settings = Settings(_env_file=None, debug=True)
    assert settings.jwt_access_expiration_minutes == 30
    assert settings.jwt_refresh_expiration_days == 30
    assert settings.jwt_reset_password_expiration_minutes == 10
    assert settings.jwt_verify_email_expiration_minutes == 10
    assert settings.db_pool_size == 5
    assert settings.db_pool_timeout == 30
    assert settings.database_url.startswith("sqlite:///")


def test_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "k" * 40)
    monkeypatch.setenv("JWT_ACCESS_EXPIRATION_MINUTES", "5")
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    settings = Settings(_env_file=None, debug=False)
    assert settings.secret_key == "k" * 40
    assert settings.jwt_access_expiration_minutes == 5
    assert settings.smtp_host == "smtp.example.com"
