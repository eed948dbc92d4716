"""
HTTP request/response logging for provider calls.

Uses httpx event hooks so every adapter and the OCR client can share one
logging client. Credentials are redacted from headers and query strings.
"""

from __future__ import annotations

import json

from typing import Any

import httpx

from utils.logger import logger

SENSITIVE_HEADERS = frozenset({"authorization", "api-key", "x-api-key", "x-goog-api-key"})
SENSITIVE_PARAMS = frozenset({"key"})


def _mask(value: str) -> str:
    # Last 4 chars only
    return f"***{value[-4:]}" if len(value) > 4 else "***"


def sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` with credential values redacted."""
    return {k: _mask(v) if k.lower() in SENSITIVE_HEADERS else v for k, v in headers.items()}


def sanitize_url(url: httpx.URL) -> str:
    """Redact API keys passed as query parameters (Gemini, Vision)."""
    params = [(k, _mask(v) if k in SENSITIVE_PARAMS else v) for k, v in url.params.multi_items()]
    if not params:
        return str(url)
    return str(url.copy_with(params=params))


class HTTPLogger:
    """Logs HTTP requests and responses for debugging."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._request_data: dict[int, dict[str, Any]] = {}

    async def log_request(self, request: httpx.Request) -> None:
        """Log outgoing HTTP request.

        Request bodies can carry base64 images, so only the size is logged.
        """
        if not self.enabled:
            return

        try:
            url = sanitize_url(request.url)
            self._request_data[id(request)] = {"method": request.method, "url": url}

            logger.info(
                f"HTTP Request: {request.method} {url}",
                http_request=True,
                method=request.method,
                url=url,
                headers=sanitize_headers(dict(request.headers)),
                body_bytes=len(request.content) if request.content else 0,
            )
        except Exception as e:
            logger.error(f"Error logging HTTP request: {e}", exc_info=True)

    async def log_response(self, response: httpx.Response) -> None:
        """Log HTTP response status and, when already read, its JSON body."""
        if not self.enabled:
            return

        try:
            request_data = self._request_data.pop(id(response.request), {})

            body: Any
            try:
                body = json.loads(response.text) if response.text else {}
            except httpx.ResponseNotRead:
                body = {"_note": "streaming response - body not captured"}
            except json.JSONDecodeError as e:
                body = {"_error": f"Invalid JSON: {e!s}"}

            logger.info(
                f"HTTP Response: {response.status_code} "
                f"{request_data.get('method', 'UNKNOWN')} {request_data.get('url', 'UNKNOWN')}",
                http_response=True,
                status_code=response.status_code,
                body=body,
            )
        except Exception as e:
            logger.error(f"Error logging HTTP response: {e}", exc_info=True)


def create_logging_client(
    enabled: bool = True,
    timeout: httpx.Timeout | None = None,
) -> httpx.AsyncClient:
    """Create an httpx client with request/response logging hooks."""
    http_logger = HTTPLogger(enabled=enabled)

    event_hooks: dict[str, list[Any]] = {
        "request": [http_logger.log_request],
        "response": [http_logger.log_response],
    }

    return httpx.AsyncClient(event_hooks=event_hooks, timeout=timeout)
