"""Tests for environment-driven settings"""

import logging

import pytest

from tradesense import config
from tradesense.config import DEFAULT_MODEL, Settings

ENV_VARS = [
    "GEMINI_API_KEY", "GEMINI_MODEL", "GEMINI_TEMPERATURE", "MAX_IMAGE_BYTES",
    "PREVIEW_MAX_SIZE", "ANALYSIS_TIMEZONE", "CORS_ORIGINS", "LOG_LEVEL", "PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr(config, "load_dotenv", lambda: False)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(caplog):
    with caplog.at_level(logging.WARNING):
        settings = Settings.from_env()

    assert settings.gemini_api_key is None
    assert settings.gemini_model == DEFAULT_MODEL
    assert settings.port == 8002
    assert settings.cors_origins == ["*"]
    assert "GEMINI_API_KEY not set" in caplog.text


def test_overrides(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "secret")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-pro")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("MAX_IMAGE_BYTES", "1000")
    monkeypatch.setenv("ANALYSIS_TIMEZONE", "Asia/Tokyo")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.gemini_api_key == "secret"
    assert settings.gemini_model == "gemini-2.5-pro"
    assert settings.port == 9000
    assert settings.max_image_bytes == 1000
    assert settings.analysis_timezone == "Asia/Tokyo"
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.log_level == "DEBUG"


def test_invalid_value(monkeypatch):
    monkeypatch.setenv("PREVIEW_MAX_SIZE", "0")

    with pytest.raises(ValueError):
        Settings.from_env()
