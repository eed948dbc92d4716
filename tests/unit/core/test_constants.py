"""Tests for constants and environment settings."""

from __future__ import annotations

import pytest

from pydantic import ValidationError

from core.constants import (
    DEFAULT_MODEL,
    MODEL_CONFIGS,
    MODEL_PROVIDERS,
    MODEL_TOKEN_LIMITS,
    SUPPORTED_MODELS,
    Settings,
    get_model_config,
    get_settings,
)


class TestModelTable:
    def test_supported_models(self) -> None:
        assert set(SUPPORTED_MODELS) == {
            "gpt-4",
            "gpt-4-0125-preview",
            "gpt-4-vision-preview",
            "gpt-3.5-turbo",
            "claude",
            "gemini-pro",
        }
        assert len(SUPPORTED_MODELS) == len(MODEL_CONFIGS)

    def test_derived_maps(self) -> None:
        assert MODEL_PROVIDERS["claude"] == "claude"
        assert MODEL_PROVIDERS["gemini-pro"] == "gemini"
        assert MODEL_PROVIDERS["gpt-4"] == "openai"
        assert all(limit > 0 for limit in MODEL_TOKEN_LIMITS.values())

    def test_unknown_model_falls_back(self) -> None:
        assert get_model_config("no-such-model").id == DEFAULT_MODEL
        assert get_model_config("claude").api_model == "claude-3-opus-20240229"


class TestSettings:
    def test_keys_optional(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_AI_API_KEY", "GOOGLE_CLOUD_API_KEY"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)  # type: ignore[call-arg]

        assert settings.openai_api_key is None
        assert settings.api_port == 8000

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")
        monkeypatch.setenv("HTTP_REQUEST_LOGGING", "true")

        settings = Settings(_env_file=None)  # type: ignore[call-arg]

        assert settings.anthropic_api_key == "sk-ant-env"
        assert settings.http_request_logging is True

    def test_blank_key_is_missing(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="  ")  # type: ignore[call-arg]

        assert settings.openai_api_key is None

    def test_invalid_port(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, api_port=70000)  # type: ignore[call-arg]

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()
