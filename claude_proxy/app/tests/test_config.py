"""Tests for claude_proxy/app/config.py"""

import importlib

import pytest
from pydantic import ValidationError

from claude_proxy.app.config import Settings, get_settings, validate_configuration


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CLAUDE_API_KEY", "ANTHROPIC_API_KEY", "PORT", "HOST", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def load_settings() -> Settings:
    return Settings(_env_file=None)


def test_defaults():
    settings = load_settings()

    assert settings.PORT == 8080
    assert settings.HOST == "0.0.0.0"
    assert settings.LOG_LEVEL == "INFO"
    assert settings.api_key is None
    assert settings.has_api_key is False


def test_port_from_environment(monkeypatch):
    monkeypatch.setenv("PORT", "9090")

    assert load_settings().PORT == 9090


def test_invalid_port_rejected(monkeypatch):
    monkeypatch.setenv("PORT", "70000")

    with pytest.raises(ValidationError):
        load_settings()


def test_claude_key_wins_over_anthropic_key(monkeypatch):
    monkeypatch.setenv("CLAUDE_API_KEY", "claude-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "anthropic-key")

    assert load_settings().api_key == "claude-key"


def test_anthropic_key_used_as_fallback(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "anthropic-key")

    assert load_settings().api_key == "anthropic-key"


def test_blank_claude_key_falls_through(monkeypatch):
    monkeypatch.setenv("CLAUDE_API_KEY", "   ")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "anthropic-key")

    settings = load_settings()
    assert settings.CLAUDE_API_KEY is None
    assert settings.api_key == "anthropic-key"


def test_log_level_normalised(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")

    assert load_settings().LOG_LEVEL == "DEBUG"


def test_invalid_log_level_rejected(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "verbose")

    with pytest.raises(ValidationError):
        load_settings()


def test_settings_are_immutable(monkeypatch):
    monkeypatch.setenv("CLAUDE_API_KEY", "claude-key")
    settings = load_settings()

    with pytest.raises(ValidationError):
        settings.CLAUDE_API_KEY = "other"


def test_validate_configuration_flags_missing_key():
    report = validate_configuration(load_settings())

    assert report["valid"] is False
    assert report["errors"]
    assert "https://mtgscanner.com" in report["allowed_origins"]


def test_validate_configuration_warns_on_both_keys(monkeypatch):
    monkeypatch.setenv("CLAUDE_API_KEY", "claude-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "anthropic-key")

    report = validate_configuration(load_settings())

    assert report["valid"] is True
    assert len(report["warnings"]) == 1


def test_validate_configuration_never_includes_key(monkeypatch):
    monkeypatch.setenv("CLAUDE_API_KEY", "super-secret-value")

    report = validate_configuration(load_settings())

    assert "super-secret-value" not in repr(report)


def test_importing_app_module_does_not_load_settings(monkeypatch):
    """Test a bad environment only fails when the app is built, not on import"""
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    get_settings.cache_clear()

    try:
        main_module = importlib.import_module("claude_proxy.app.main")
        importlib.reload(main_module)

        with pytest.raises(ValidationError):
            main_module.create_app()
    finally:
        get_settings.cache_clear()
