"""
Title and summary generation through a low-cost model.

Both calls are single-shot and never raise for provider problems: a failure
is logged and the fallback value is returned instead.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from core.constants import (
    AUXILIARY_MODEL,
    DEFAULT_CHAT_TITLE,
    SUMMARY_MAX_TOKENS,
    TITLE_MAX_LENGTH,
    TITLE_MAX_TOKENS,
)
from core.prompts import AUXILIARY_TEMPERATURE, SUMMARY_PROMPT, TITLE_PROMPT, TITLE_QUOTE_CHARS
from integrations.openai_adapter import OpenAIAdapter
from models.chat_models import Message
from utils.content_utils import clean_for_title, strip_image_markup
from utils.logger import logger

_QUOTES = str.maketrans("", "", TITLE_QUOTE_CHARS)


def clean_title(raw: str, fallback: str = DEFAULT_CHAT_TITLE) -> str:
    """Strip quotes and whitespace and cap the length."""
    title = raw.translate(_QUOTES).strip()
    if not title:
        return fallback
    return title[:TITLE_MAX_LENGTH]


class TitleGenerator:
    """Generates chat titles and summaries."""

    def __init__(self, adapter: OpenAIAdapter | None = None, model: str = AUXILIARY_MODEL):
        self._adapter = adapter
        self.model = model

    def _get_adapter(self) -> OpenAIAdapter:
        """Lazily create the OpenAI adapter."""
        if self._adapter is None:
            self._adapter = OpenAIAdapter()
        return self._adapter

    async def generate_chat_title(self, content: str, fallback: str = DEFAULT_CHAT_TITLE) -> str:
        """Return a title of at most 20 characters for ``content``."""
        text = clean_for_title(content)
        if not text:
            return fallback

        messages: list[dict[str, Any]] = [
            {"role": "system", "content": TITLE_PROMPT},
            {"role": "user", "content": text},
        ]
        try:
            raw = await self._get_adapter().complete(
                messages, model=self.model, max_tokens=TITLE_MAX_TOKENS, temperature=AUXILIARY_TEMPERATURE
            )
        except Exception as e:
            logger.error(f"Error generating chat title: {e}")
            return fallback

        return clean_title(raw, fallback)

    async def generate_chat_summary(self, messages: Sequence[Message]) -> str:
        """Return a one or two sentence summary, or an empty string on failure."""
        if not messages:
            return ""

        payload: list[dict[str, Any]] = [
            {"role": message.role, "content": strip_image_markup(message.content)} for message in messages
        ]
        payload.append({"role": "user", "content": SUMMARY_PROMPT})

        try:
            summary = await self._get_adapter().complete(
                payload, model=self.model, max_tokens=SUMMARY_MAX_TOKENS, temperature=AUXILIARY_TEMPERATURE
            )
        except Exception as e:
            logger.error(f"Error generating chat summary: {e}")
            return ""

        summary = summary.strip()
        if summary:
            logger.info("Generated chat summary", summary_length=len(summary))
        return summary


__all__ = ["TitleGenerator", "clean_title"]
