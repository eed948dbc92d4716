"""
Conversation data models for Multichat.
Provides Pydantic models for chats, messages, settings and the export envelope.

Python attributes are snake_case; persisted and exported JSON uses camelCase
keys (``createdAt``, ``parentId``, ``contextIds`` ...). Always serialize with
``by_alias=True`` and ``exclude_none=True`` so optional fields stay absent.
"""

from __future__ import annotations

import time
import uuid

from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from core.constants import (
    CHAT_ID_LENGTH,
    CHAT_ID_PREFIX,
    DEFAULT_CHAT_TITLE,
    DEFAULT_MAX_CONTEXT_MESSAGES,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOKEN_LIMIT,
    DEFAULT_USE_CONTEXT,
)

MessageRole = Literal["user", "assistant", "system"]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def generate_chat_id() -> str:
    """Generate a chat id: ``chat_`` followed by 12 hex characters."""
    return f"{CHAT_ID_PREFIX}{uuid.uuid4().hex[:CHAT_ID_LENGTH]}"


class CamelModel(BaseModel):
    """Base model serializing to the camelCase keys used on disk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys and no unset optionals."""
        data: dict[str, Any] = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return data


class Message(CamelModel):
    """One chat message. Immutable; order within a chat is list position."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    timestamp: int = Field(default_factory=now_ms)


class Continuation(CamelModel):
    """Links a chat split at a token budget to its predecessor/successor."""

    from_id: str | None = None
    to_id: str | None = None
    token_count: int = Field(default=0, ge=0)


class Chat(CamelModel):
    """One conversation thread and its thread-relationship metadata.

    Chats are frozen: the store replaces whole objects, use ``evolve`` to
    derive a changed copy.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str
    messages: list[Message]
    model: str
    created_at: int
    updated_at: int
    parent_id: str | None = None
    context_ids: list[str] = Field(default_factory=list)
    summary: str | None = None
    continuation: Continuation | None = None

    @field_validator("context_ids")
    @classmethod
    def normalize_context_ids(cls, v: list[str], info: ValidationInfo) -> list[str]:
        """Drop duplicate ids and the chat's own id."""
        own_id = info.data.get("id")
        seen: set[str] = set()
        normalized: list[str] = []
        for context_id in v:
            if context_id == own_id or context_id in seen:
                continue
            seen.add(context_id)
            normalized.append(context_id)
        return normalized

    def evolve(self, **changes: Any) -> Chat:
        """Return a validated copy with ``changes`` applied (snake_case names)."""
        data = self.model_dump()
        data.update(changes)
        return Chat.model_validate(data)

    def with_message(self, message: Message) -> Chat:
        return self.evolve(messages=[*self.messages, message], updated_at=now_ms())

    @property
    def token_count(self) -> int:
        return self.continuation.token_count if self.continuation else 0


class ChatSettings(CamelModel):
    """Process-wide chat settings, persisted under ``chatSettings``."""

    model: str = DEFAULT_MODEL
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    use_context: bool = DEFAULT_USE_CONTEXT
    max_context_messages: int = Field(default=DEFAULT_MAX_CONTEXT_MESSAGES, ge=0)
    token_limit: int = Field(default=DEFAULT_TOKEN_LIMIT, gt=0)


DEFAULT_SETTINGS = ChatSettings()


class ChatContext(CamelModel):
    """History drawn from a related chat. Derived, never persisted."""

    model_config = ConfigDict(frozen=True)

    messages: list[Message]
    summary: str | None = None
    chat_id: str


class ChatExportData(CamelModel):
    """Versioned export envelope."""

    version: StrictStr
    exported_at: StrictInt | StrictFloat
    chats: list[Chat]
    settings: ChatSettings = Field(default_factory=ChatSettings)


class ChatExportOptions(CamelModel):
    include_settings: bool = False
    selected_chat_ids: list[str] | None = None


class ChatImportResult(CamelModel):
    """Outcome of an import. Collisions are reported, not treated as errors."""

    success: bool
    imported_chats_count: int = 0
    error: str | None = None
    duplicate_chats: list[str] = Field(default_factory=list)


class TokenInfo(CamelModel):
    count: int
    limit: int
    is_near_limit: bool


def create_new_chat(
    model: str | None = None,
    parent_id: str | None = None,
    context_ids: list[str] | None = None,
    title: str = DEFAULT_CHAT_TITLE,
    continuation: Continuation | None = None,
) -> Chat:
    """Build an empty chat with a fresh id and matching timestamps."""
    timestamp = now_ms()
    return Chat(
        id=generate_chat_id(),
        title=title,
        messages=[],
        model=model or DEFAULT_MODEL,
        created_at=timestamp,
        updated_at=timestamp,
        parent_id=parent_id,
        context_ids=context_ids or [],
        continuation=continuation,
    )


__all__ = [
    "DEFAULT_SETTINGS",
    "Chat",
    "ChatContext",
    "ChatExportData",
    "ChatExportOptions",
    "ChatImportResult",
    "ChatSettings",
    "Continuation",
    "Message",
    "MessageRole",
    "TokenInfo",
    "create_new_chat",
    "generate_chat_id",
    "now_ms",
]
