"""
Context resolution for thread-aware prompting.

Computes which prior chats feed context into a request, assembles the
message sequence sent to a provider, and ranks chats by keyword overlap.
"""

from __future__ import annotations

import re

from collections.abc import Sequence

from core.constants import (
    CONTEXT_END_DELIMITER,
    CONTEXT_SUMMARY_TEMPLATE,
    KEYWORD_MIN_LENGTH,
    MAX_RELATED_CHATS,
    TOKEN_WARNING_THRESHOLD,
)
from models.chat_models import Chat, ChatContext, Continuation, Message, TokenInfo, create_new_chat

_WORD_SPLIT = re.compile(r"\W+")


def _find(chat_id: str, all_chats: Sequence[Chat]) -> Chat | None:
    return next((chat for chat in all_chats if chat.id == chat_id), None)


def _tail(messages: Sequence[Message], max_messages: int) -> list[Message]:
    if max_messages <= 0:
        return []
    return list(messages[-max_messages:])


def _context_for(chat: Chat, max_context_messages: int) -> ChatContext:
    return ChatContext(
        messages=_tail(chat.messages, max_context_messages),
        summary=chat.summary,
        chat_id=chat.id,
    )


def get_related_context(chat: Chat, all_chats: Sequence[Chat], max_context_messages: int) -> list[ChatContext]:
    """Contexts to inject before the chat's own messages.

    The parent comes first, then each resolvable ``context_ids`` entry in
    order. Each context carries the last ``max_context_messages`` messages.
    """
    contexts: list[ChatContext] = []

    if chat.parent_id:
        parent = _find(chat.parent_id, all_chats)
        if parent is not None:
            contexts.append(_context_for(parent, max_context_messages))

    for context_id in chat.context_ids:
        related = _find(context_id, all_chats)
        if related is not None:
            contexts.append(_context_for(related, max_context_messages))

    return contexts


def build_messages_with_context(current_messages: Sequence[Message], contexts: Sequence[ChatContext]) -> list[Message]:
    """Flatten contexts and the live conversation into one provider request.

    Each context contributes an optional summary system message, its message
    slice and an end-of-context delimiter.
    """
    messages: list[Message] = []

    for context in contexts:
        if context.summary:
            messages.append(
                Message(
                    role="system",
                    content=CONTEXT_SUMMARY_TEMPLATE.format(chat_id=context.chat_id, summary=context.summary),
                )
            )
        messages.extend(context.messages)
        messages.append(Message(role="system", content=CONTEXT_END_DELIMITER))

    messages.extend(current_messages)
    return messages


def extract_keywords(messages: Sequence[Message]) -> set[str]:
    """Lowercased word set of all message text, words longer than 3 chars."""
    text = " ".join(message.content for message in messages).lower()
    return {word for word in _WORD_SPLIT.split(text) if len(word) > KEYWORD_MIN_LENGTH}


def calculate_similarity(first: set[str], second: set[str]) -> float:
    """Jaccard similarity; 0 when either set is empty."""
    if not first or not second:
        return 0.0
    return len(first & second) / len(first | second)


def detect_related_chats(chat: Chat, all_chats: Sequence[Chat], max_related: int = MAX_RELATED_CHATS) -> list[str]:
    """Ids of the ``max_related`` chats most similar to ``chat``.

    Ties keep store order.
    """
    current_keywords = extract_keywords(chat.messages)
    scored = [
        (other.id, calculate_similarity(current_keywords, extract_keywords(other.messages)))
        for other in all_chats
        if other.id != chat.id
    ]
    # sorted() is stable
    scored = sorted(scored, key=lambda item: item[1], reverse=True)
    return [chat_id for chat_id, _ in scored[: max(max_related, 0)]]


def merge_context_ids(chat: Chat, related_ids: Sequence[str]) -> list[str]:
    """Union of existing context ids and ``related_ids``, existing order first."""
    merged = list(chat.context_ids)
    for related_id in related_ids:
        if related_id != chat.id and related_id not in merged:
            merged.append(related_id)
    return merged


def create_child_chat(parent: Chat, model: str | None = None) -> Chat:
    """New chat threaded under ``parent`` with the parent as context."""
    return create_new_chat(
        model=model or parent.model,
        parent_id=parent.id,
        context_ids=[parent.id],
    )


def create_continuation_chat(previous: Chat) -> Chat:
    """New chat continuing ``previous`` past its token budget."""
    return create_new_chat(
        model=previous.model,
        parent_id=previous.id,
        context_ids=[previous.id],
        continuation=Continuation(from_id=previous.id),
    )


def get_token_info(chat: Chat, token_limit: int) -> TokenInfo:
    count = chat.token_count
    return TokenInfo(
        count=count,
        limit=token_limit,
        is_near_limit=count >= token_limit * TOKEN_WARNING_THRESHOLD,
    )


__all__ = [
    "build_messages_with_context",
    "calculate_similarity",
    "create_child_chat",
    "create_continuation_chat",
    "detect_related_chats",
    "extract_keywords",
    "get_related_context",
    "get_token_info",
    "merge_context_ids",
]
