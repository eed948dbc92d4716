"""
Provider adapter interface.

Each adapter turns one provider's wire format into an async iterator of text
fragments. Iterators are finite and cannot be restarted; closing one early
(``aclose``) releases the underlying HTTP response.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Sequence
from dataclasses import dataclass
from typing import ClassVar

import httpx

from core.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, Settings, get_model_config, get_settings
from core.exceptions import ProviderError
from models.chat_models import ChatSettings, Message
from utils.client_factory import create_http_client


@dataclass(frozen=True, slots=True)
class ModelParams:
    """Per-request generation parameters."""

    model: str
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    @property
    def api_model(self) -> str:
        return get_model_config(self.model).api_model

    @classmethod
    def for_chat(cls, model: str, settings: ChatSettings) -> ModelParams:
        return cls(model=model, temperature=settings.temperature, max_tokens=settings.max_tokens)


class ProviderAdapter(ABC):
    """Base class for provider stream adapters."""

    provider: ClassVar[str]

    def __init__(self, http_client: httpx.AsyncClient | None = None, settings: Settings | None = None):
        """
        Args:
            http_client: Shared client; when omitted the adapter creates and owns one
            settings: Environment settings (default: cached get_settings())
        """
        self._http_client = http_client
        self._owns_client = http_client is None
        self._settings = settings

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = create_http_client(enable_logging=self.settings.http_request_logging)
        return self._http_client

    def require_key(self, value: str | None, env_name: str) -> str:
        """Return a configured API key or fail like an unreachable provider."""
        if not value:
            raise ProviderError(self.provider, None, f"{env_name} is not configured")
        return value

    @abstractmethod
    def send_messages(self, messages: Sequence[Message], params: ModelParams) -> AsyncGenerator[str, None]:
        """Stream reply text for ``messages``.

        Raises:
            ProviderError: Upstream returned a non-success status or was unreachable
            MalformedResponseError: A successful response lacks expected fields
        """

    async def aclose(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


def error_body(response: httpx.Response) -> str:
    """Best-effort text of an error response (already read)."""
    try:
        return response.text
    except httpx.ResponseNotRead:
        return ""


__all__ = ["ModelParams", "ProviderAdapter", "error_body"]
