"""Chat history search with keyword highlights."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from models.chat_models import Chat, Message

#: Characters of context kept on each side of a keyword hit
HIGHLIGHT_CONTEXT_CHARS = 30
ELLIPSIS = "..."


@dataclass(frozen=True, slots=True)
class SearchFilters:
    start_date: datetime | None = None
    end_date: datetime | None = None
    model: str | None = None
    keyword: str | None = None


@dataclass(frozen=True, slots=True)
class SearchMatch:
    message_index: int
    content: str
    highlight: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SearchResult:
    chat: Chat
    matches: list[SearchMatch] = field(default_factory=list)


def _to_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _highlights(content: str, keyword: str) -> list[str]:
    """One snippet per case-insensitive occurrence of ``keyword``."""
    lowered = content.lower()
    snippets: list[str] = []
    position = lowered.find(keyword)
    while position != -1:
        start = max(0, position - HIGHLIGHT_CONTEXT_CHARS)
        end = min(len(content), position + len(keyword) + HIGHLIGHT_CONTEXT_CHARS)
        prefix = ELLIPSIS if start > 0 else ""
        suffix = ELLIPSIS if end < len(content) else ""
        snippets.append(f"{prefix}{content[start:end]}{suffix}")
        position = lowered.find(keyword, position + len(keyword))
    return snippets


def find_matches(messages: Sequence[Message], keyword: str | None) -> list[SearchMatch]:
    if not keyword:
        return []
    needle = keyword.lower()
    return [
        SearchMatch(message_index=index, content=message.content, highlight=_highlights(message.content, needle))
        for index, message in enumerate(messages)
        if needle in message.content.lower()
    ]


def _passes(chat: Chat, filters: SearchFilters) -> bool:
    if filters.start_date and chat.created_at < _to_ms(filters.start_date):
        return False
    if filters.end_date and chat.created_at > _to_ms(filters.end_date):
        return False
    if filters.model and chat.model != filters.model:
        return False
    return True


def search_chats(chats: Sequence[Chat], filters: SearchFilters) -> list[SearchResult]:
    """Filter chats by creation date, model and keyword.

    With a keyword, only chats containing it are returned, each with its
    matching messages. Without one, every chat passing the other filters is
    returned with no matches.
    """
    results: list[SearchResult] = []
    for chat in chats:
        if not _passes(chat, filters):
            continue
        matches = find_matches(chat.messages, filters.keyword)
        if filters.keyword and not matches:
            continue
        results.append(SearchResult(chat=chat, matches=matches))
    return results


__all__ = ["SearchFilters", "SearchMatch", "SearchResult", "find_matches", "search_chats"]
