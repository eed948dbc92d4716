"""Tests for client factory utilities.

Tests httpx and OpenAI client creation and configuration.
"""

from __future__ import annotations

from unittest.mock import ANY, Mock, patch

import httpx

from utils.client_factory import create_http_client, create_openai_client


class TestCreateHttpClient:
    """Tests for create_http_client function."""

    def test_logging_enabled_uses_logging_client(self) -> None:
        with patch("utils.client_factory.create_logging_client") as mock_create:
            mock_create.return_value = Mock()

            result = create_http_client(enable_logging=True)

            assert result is mock_create.return_value
            mock_create.assert_called_once_with(enabled=True, timeout=ANY)
            assert isinstance(mock_create.call_args.kwargs["timeout"], httpx.Timeout)

    def test_logging_disabled_returns_plain_client(self) -> None:
        result = create_http_client(enable_logging=False)

        assert isinstance(result, httpx.AsyncClient)
        assert result.event_hooks["request"] == []

    def test_default_reads_setting(self) -> None:
        settings = Mock(http_request_logging=False)
        with patch("utils.client_factory.get_settings", return_value=settings):
            result = create_http_client()

        assert isinstance(result, httpx.AsyncClient)

    def test_timeouts(self) -> None:
        result = create_http_client(enable_logging=False)

        assert result.timeout.connect == 30.0
        assert result.timeout.read == 600.0
        assert result.timeout.write == 30.0
        assert result.timeout.pool == 30.0

    def test_custom_read_timeout(self) -> None:
        assert create_http_client(enable_logging=False, read_timeout=15.0).timeout.read == 15.0


class TestCreateOpenAIClient:
    """Tests for create_openai_client function."""

    def test_minimal(self) -> None:
        with patch("utils.client_factory.AsyncOpenAI") as mock_async_openai:
            create_openai_client(api_key="test-key")

            mock_async_openai.assert_called_once_with(api_key="test-key", http_client=None)

    def test_base_url_and_http_client(self) -> None:
        http_client = httpx.AsyncClient()
        with patch("utils.client_factory.AsyncOpenAI") as mock_async_openai:
            create_openai_client(api_key="k", base_url="http://localhost:1234/v1", http_client=http_client)

            mock_async_openai.assert_called_once_with(
                api_key="k", base_url="http://localhost:1234/v1", http_client=http_client
            )
