"""
Google Gemini adapter.

Gemini is called through ``generateContent`` (not streaming), so the full
reply is yielded as a single fragment. A last message carrying embedded
images goes to the vision model with inline image parts.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Sequence
from typing import Any

import httpx

from core.constants import (
    GEMINI_API_BASE,
    GEMINI_MAX_OUTPUT_TOKENS,
    GEMINI_TEXT_MODEL,
    GEMINI_VISION_MODEL,
    PROVIDER_GEMINI,
)
from core.exceptions import MalformedResponseError, ProviderError
from integrations.base import ModelParams, ProviderAdapter, error_body
from models.chat_models import Message
from utils.content_utils import ImageSegment, has_embedded_image, split_content, strip_image_markup
from utils.logger import logger


def gemini_role(message: Message) -> str:
    return "user" if message.role == "user" else "model"


def build_parts(content: str) -> list[dict[str, Any]]:
    """Text and inline-image parts of one message, in content order."""
    parts: list[dict[str, Any]] = []
    for segment in split_content(content):
        if isinstance(segment, ImageSegment):
            parts.append({"inlineData": {"mimeType": segment.mime_type, "data": segment.data}})
        else:
            parts.append({"text": segment.text})
    return parts


def build_gemini_request(messages: Sequence[Message], params: ModelParams) -> tuple[str, dict[str, Any]]:
    """Return the model name and request body for ``messages``.

    History keeps text only; images in earlier turns become ``[画像]``.
    System messages (context summaries and delimiters) go to the top-level
    ``systemInstruction`` rather than appearing as model turns.

    Raises:
        ValueError: The message list is empty or the last message has no content
    """
    if not messages or not messages[-1].content.strip():
        raise ValueError("Empty message content")

    *history, last = messages
    system_parts: list[str] = []
    contents: list[dict[str, Any]] = []
    for message in history:
        text = strip_image_markup(message.content).strip()
        if not text:
            continue
        if message.role == "system":
            system_parts.append(text)
        else:
            contents.append({"role": gemini_role(message), "parts": [{"text": text}]})

    vision = has_embedded_image(last.content)
    if vision:
        contents.append({"role": "user", "parts": build_parts(last.content)})
    else:
        contents.append({"role": "user", "parts": [{"text": last.content}]})

    body: dict[str, Any] = {
        "contents": contents,
        "generationConfig": {
            "temperature": params.temperature,
            "maxOutputTokens": GEMINI_MAX_OUTPUT_TOKENS,
        },
    }
    if system_parts:
        body["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
    return (GEMINI_VISION_MODEL if vision else GEMINI_TEXT_MODEL), body


def extract_text(data: Any) -> str:
    """``candidates[0].content.parts[0].text`` of a generateContent response.

    Raises:
        MalformedResponseError: Any step of the path is missing or empty
    """
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponseError(PROVIDER_GEMINI, f"missing candidates[0].content.parts[0].text ({e!r})") from e
    if not isinstance(text, str) or not text:
        raise MalformedResponseError(PROVIDER_GEMINI, "empty candidate text")
    return text


class GeminiAdapter(ProviderAdapter):
    """Single-shot generateContent call exposed as a one-fragment stream."""

    provider = PROVIDER_GEMINI

    async def send_messages(self, messages: Sequence[Message], params: ModelParams) -> AsyncGenerator[str, None]:
        api_key = self.require_key(self.settings.google_ai_api_key, "GOOGLE_AI_API_KEY")
        try:
            model, body = build_gemini_request(messages, params)
        except ValueError as e:
            raise ProviderError(self.provider, None, str(e)) from e

        url = f"{GEMINI_API_BASE}/{model}:generateContent"
        logger.debug(f"Gemini request: model={model} contents={len(body['contents'])}", model=params.model)

        try:
            response = await self.http_client.post(url, params={"key": api_key}, json=body)
        except httpx.HTTPError as e:
            raise ProviderError(self.provider, None, str(e)) from e

        if not response.is_success:
            raise ProviderError(self.provider, response.status_code, error_body(response))

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(self.provider, f"response is not JSON ({e})") from e

        yield extract_text(data)


__all__ = ["GeminiAdapter", "build_gemini_request", "build_parts", "extract_text"]
