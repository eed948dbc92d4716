"""
Anthropic Messages API stream adapter.

Reads the server-sent event stream line by line and yields the text of
``content_block_delta`` events. Other event types are ignored; a line that is
not valid JSON is logged and skipped.
"""

from __future__ import annotations

import json

from collections.abc import AsyncGenerator, Sequence
from typing import Any

import httpx

from core.constants import ANTHROPIC_MAX_TEMPERATURE, ANTHROPIC_MESSAGES_URL, ANTHROPIC_VERSION, PROVIDER_CLAUDE
from core.exceptions import MalformedResponseError, ProviderError
from integrations.base import ModelParams, ProviderAdapter
from models.chat_models import Message
from utils.logger import logger

SSE_DATA_PREFIX = "data: "


def build_claude_payload(messages: Sequence[Message], params: ModelParams) -> dict[str, Any]:
    """Build a Messages API request body.

    System messages move to the top-level ``system`` field and consecutive
    turns of the same role are merged, since the API requires alternation.
    """
    system_parts: list[str] = []
    turns: list[dict[str, str]] = []

    for message in messages:
        if message.role == "system":
            system_parts.append(message.content)
            continue
        role = "user" if message.role == "user" else "assistant"
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] = f"{turns[-1]['content']}\n\n{message.content}"
        else:
            turns.append({"role": role, "content": message.content})

    payload: dict[str, Any] = {
        "model": params.api_model,
        "max_tokens": params.max_tokens,
        "temperature": min(params.temperature, ANTHROPIC_MAX_TEMPERATURE),
        "messages": turns,
        "stream": True,
    }
    if system_parts:
        payload["system"] = "\n\n".join(system_parts)
    return payload


def parse_event_line(line: str) -> str | None:
    """Text carried by one SSE line, or None when it carries none.

    Raises:
        ProviderError: The stream reported an ``error`` event
        MalformedResponseError: A content delta has no ``delta`` object
    """
    if not line.startswith(SSE_DATA_PREFIX):
        return None

    try:
        data = json.loads(line[len(SSE_DATA_PREFIX) :])
    except json.JSONDecodeError as e:
        logger.warning(f"Skipping unparseable Claude event: {e}")
        return None

    if not isinstance(data, dict):
        return None

    event_type = data.get("type")
    if event_type == "error":
        error = data.get("error") or {}
        raise ProviderError(PROVIDER_CLAUDE, None, json.dumps(error, ensure_ascii=False))

    if event_type != "content_block_delta":
        return None

    delta = data.get("delta")
    if not isinstance(delta, dict):
        raise MalformedResponseError(PROVIDER_CLAUDE, "content_block_delta without delta")

    text = delta.get("text")
    return text if isinstance(text, str) and text else None


class ClaudeAdapter(ProviderAdapter):
    """Streaming POST to the Anthropic Messages API."""

    provider = PROVIDER_CLAUDE

    async def send_messages(self, messages: Sequence[Message], params: ModelParams) -> AsyncGenerator[str, None]:
        api_key = self.require_key(self.settings.anthropic_api_key, "ANTHROPIC_API_KEY")
        headers = {
            "content-type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        payload = build_claude_payload(messages, params)

        logger.debug(f"Claude request: model={params.api_model} turns={len(payload['messages'])}", model=params.model)

        try:
            request = self.http_client.stream("POST", ANTHROPIC_MESSAGES_URL, headers=headers, json=payload)
            async with request as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise ProviderError(self.provider, response.status_code, body)

                async for line in response.aiter_lines():
                    text = parse_event_line(line)
                    if text:
                        yield text
        except httpx.HTTPError as e:
            raise ProviderError(self.provider, None, str(e)) from e


__all__ = ["ClaudeAdapter", "build_claude_payload", "parse_event_line"]
