"""
OpenAI chat-completions stream adapter.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Sequence
from typing import Any

import httpx

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from core.constants import (
    DEFAULT_TEMPERATURE,
    IMAGE_ANALYSIS_FALLBACK,
    IMAGE_ANALYSIS_MAX_TOKENS,
    IMAGE_ANALYSIS_MODEL,
    PROVIDER_OPENAI,
    Settings,
    get_model_config,
)
from core.exceptions import ProviderError
from core.prompts import IMAGE_ANALYSIS_PROMPT
from integrations.base import ModelParams, ProviderAdapter
from models.chat_models import Message
from utils.client_factory import create_openai_client
from utils.content_utils import ImageSegment, has_embedded_image, split_content
from utils.logger import logger


def to_openai_message(message: Message, vision: bool = False) -> dict[str, Any]:
    """Convert a chat message to the chat-completions shape.

    Vision models receive embedded images as ``image_url`` parts.
    """
    if not vision or not has_embedded_image(message.content):
        return {"role": message.role, "content": message.content}

    parts: list[dict[str, Any]] = []
    for segment in split_content(message.content):
        if isinstance(segment, ImageSegment):
            url = f"data:{segment.mime_type};base64,{segment.data}"
            parts.append({"type": "image_url", "image_url": {"url": url}})
        else:
            parts.append({"type": "text", "text": segment.text})
    return {"role": message.role, "content": parts}


class OpenAIAdapter(ProviderAdapter):
    """Wraps ``chat.completions.create(stream=True)``."""

    provider = PROVIDER_OPENAI

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
        client: AsyncOpenAI | None = None,
    ):
        super().__init__(http_client, settings)
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        """Lazily create the OpenAI client."""
        if self._client is None:
            api_key = self.require_key(self.settings.openai_api_key, "OPENAI_API_KEY")
            self._client = create_openai_client(
                api_key,
                base_url=self.settings.openai_base_url,
                http_client=self.http_client,
            )
        return self._client

    async def send_messages(self, messages: Sequence[Message], params: ModelParams) -> AsyncGenerator[str, None]:
        client = self._get_client()
        vision = get_model_config(params.model).supports_vision
        payload = [to_openai_message(message, vision) for message in messages]

        logger.debug(f"OpenAI request: model={params.api_model} messages={len(payload)}", model=params.model)

        try:
            stream = await client.chat.completions.create(
                model=params.api_model,
                messages=payload,  # type: ignore[arg-type]
                temperature=params.temperature,
                max_tokens=params.max_tokens,
                stream=True,
            )
        except APIStatusError as e:
            raise ProviderError(self.provider, e.status_code, str(e.body or e.message)) from e
        except APIConnectionError as e:
            raise ProviderError(self.provider, None, str(e)) from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except APIStatusError as e:
            raise ProviderError(self.provider, e.status_code, str(e.body or e.message)) from e
        except APIConnectionError as e:
            raise ProviderError(self.provider, None, str(e)) from e
        finally:
            await stream.close()

    async def complete(
        self, messages: Sequence[dict[str, Any]], model: str, max_tokens: int, temperature: float
    ) -> str:
        """Single-shot completion used for titles, summaries and image analysis."""
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=get_model_config(model).api_model,
                messages=list(messages),  # type: ignore[arg-type]
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except APIStatusError as e:
            raise ProviderError(self.provider, e.status_code, str(e.body or e.message)) from e
        except APIConnectionError as e:
            raise ProviderError(self.provider, None, str(e)) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def analyze_image(self, image_data: str) -> str:
        """Ask the vision model for a short Japanese analysis of an image.

        Args:
            image_data: base64 data URL

        Returns:
            The model's analysis, or a fixed fallback when it replies with nothing
        """
        message = {
            "role": "user",
            "content": [
                {"type": "text", "text": IMAGE_ANALYSIS_PROMPT},
                {"type": "image_url", "image_url": {"url": image_data, "detail": "high"}},
            ],
        }
        analysis = await self.complete([message], IMAGE_ANALYSIS_MODEL, IMAGE_ANALYSIS_MAX_TOKENS, DEFAULT_TEMPERATURE)
        if not analysis:
            logger.warning("Image analysis returned no content", model=IMAGE_ANALYSIS_MODEL)
            return IMAGE_ANALYSIS_FALLBACK
        return analysis


__all__ = ["OpenAIAdapter", "to_openai_message"]
