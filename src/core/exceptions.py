"""
Domain exceptions for Multichat.

All errors raised by the store, the codec and the provider adapters derive
from ChatError so callers can separate expected failures from bugs.
"""

from __future__ import annotations

from typing import Any


class ChatError(Exception):
    """Base class for all Multichat errors."""


class PayloadValidationError(ChatError):
    """Malformed import payload or message data. Never retried."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        self.details = details or []
        super().__init__(message)


class DuplicateIdError(ChatError):
    """A chat with the same id already exists in the store."""

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__(f"Chat '{chat_id}' already exists")


class ChatNotFoundError(ChatError):
    """No chat with the given id exists in the store."""

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__(f"Chat '{chat_id}' not found")


class ProviderError(ChatError):
    """Upstream LLM API returned a non-success status or could not be reached.

    ``status`` is None for transport failures and missing credentials.
    """

    def __init__(self, provider: str, status: int | None, body: str = ""):
        self.provider = provider
        self.status = status
        self.body = body
        label = f"HTTP {status}" if status is not None else "request failed"
        message = f"{provider} API {label}"
        if body:
            message = f"{message}: {body[:500]}"
        super().__init__(message)


class MalformedResponseError(ChatError):
    """A successful provider response is missing expected fields."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"Invalid response format from {provider} API: {detail}")


class StreamAbortedError(ChatError):
    """A send-message operation was cancelled on purpose. Not a user-facing failure."""

    def __init__(self, reason: str | None = None):
        self.reason = reason
        super().__init__(reason or "Stream aborted")


class StorageError(ChatError):
    """Persisted state could not be read or written. Logged, never surfaced."""


__all__ = [
    "ChatError",
    "ChatNotFoundError",
    "DuplicateIdError",
    "MalformedResponseError",
    "PayloadValidationError",
    "ProviderError",
    "StorageError",
    "StreamAbortedError",
]
