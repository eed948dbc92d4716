"""
Client factory utilities.
Centralizes httpx and AsyncOpenAI client creation with consistent configuration.
"""

from __future__ import annotations

from typing import Any

import httpx

from openai import AsyncOpenAI

from core.constants import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    get_settings,
)
from utils.http_logger import create_logging_client


def create_http_client(
    enable_logging: bool | None = None,
    read_timeout: float | None = None,
) -> httpx.AsyncClient:
    """Create HTTP client with proper timeouts for streaming.

    Args:
        enable_logging: Enable HTTP request/response logging
            (default: HTTP_REQUEST_LOGGING setting)
        read_timeout: Read timeout in seconds (default: 600s, replies can stall between chunks)

    Returns:
        Configured httpx.AsyncClient
    """
    if enable_logging is None:
        enable_logging = get_settings().http_request_logging

    timeout = httpx.Timeout(
        connect=HTTP_CONNECT_TIMEOUT,
        read=read_timeout if read_timeout is not None else HTTP_READ_TIMEOUT,
        write=HTTP_WRITE_TIMEOUT,
        pool=HTTP_POOL_TIMEOUT,
    )

    if enable_logging:
        return create_logging_client(enabled=True, timeout=timeout)

    return httpx.AsyncClient(timeout=timeout)


def create_openai_client(
    api_key: str,
    base_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncOpenAI:
    """Create AsyncOpenAI client with consistent configuration.

    Args:
        api_key: OpenAI API key
        base_url: Optional base URL for OpenAI-compatible endpoints
        http_client: Optional shared httpx client

    Returns:
        Configured AsyncOpenAI client
    """
    kwargs: dict[str, Any] = {"api_key": api_key, "http_client": http_client}
    if base_url:
        kwargs["base_url"] = base_url
    return AsyncOpenAI(**kwargs)
