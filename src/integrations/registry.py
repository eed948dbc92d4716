"""
Adapter registry: maps a chat's model id to its provider adapter.

New providers are added by registering an adapter class, never by branching
on provider names elsewhere.
"""

from __future__ import annotations

import httpx

from core.constants import PROVIDER_CLAUDE, PROVIDER_GEMINI, PROVIDER_OPENAI, Settings, get_model_config
from integrations.base import ProviderAdapter
from integrations.claude_adapter import ClaudeAdapter
from integrations.gemini_adapter import GeminiAdapter
from integrations.openai_adapter import OpenAIAdapter

ADAPTER_CLASSES: dict[str, type[ProviderAdapter]] = {
    PROVIDER_OPENAI: OpenAIAdapter,
    PROVIDER_CLAUDE: ClaudeAdapter,
    PROVIDER_GEMINI: GeminiAdapter,
}


class AdapterRegistry:
    """Lazily creates one adapter per provider, sharing one HTTP client."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, settings: Settings | None = None):
        self._http_client = http_client
        self._settings = settings
        self._adapters: dict[str, ProviderAdapter] = {}

    def register(self, provider: str, adapter: ProviderAdapter) -> None:
        self._adapters[provider] = adapter

    def get(self, provider: str) -> ProviderAdapter:
        if provider not in self._adapters:
            adapter_cls = ADAPTER_CLASSES.get(provider)
            if adapter_cls is None:
                raise KeyError(f"No adapter for provider '{provider}'")
            self._adapters[provider] = adapter_cls(http_client=self._http_client, settings=self._settings)
        return self._adapters[provider]

    def for_model(self, model: str) -> ProviderAdapter:
        """Adapter for a chat model id (unknown ids use the default model's provider)."""
        return self.get(get_model_config(model).provider)

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()
        self._adapters.clear()


__all__ = ["ADAPTER_CLASSES", "AdapterRegistry"]
