"""Conversation store.

Owns the chat collection, the current-selection pointer and the settings.
Every mutation replaces whole Chat objects, persists both storage keys
synchronously and notifies subscribers with an immutable snapshot.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from core.constants import STORAGE_KEY_CHATS, STORAGE_KEY_SETTINGS
from core.exceptions import ChatNotFoundError, DuplicateIdError, StorageError
from core.storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from models.chat_models import (
    Chat,
    ChatExportData,
    ChatExportOptions,
    ChatImportResult,
    ChatSettings,
)
from utils.json_utils import json_compact
from utils.logger import logger

_CHAT_LIST = TypeAdapter(list[Chat])


@dataclass(frozen=True, slots=True)
class StoreState:
    """Immutable snapshot of the store after a mutation."""

    chats: tuple[Chat, ...]
    current_chat_id: str | None
    settings: ChatSettings


StoreListener = Callable[[StoreState], None]


class ChatStore:
    """Single source of truth for chats, selection and settings."""

    def __init__(self, storage: KeyValueStorage | None = None):
        """Initialize the store and load persisted state.

        Args:
            storage: Key-value backend (default: in-memory)
        """
        self.storage: KeyValueStorage = storage if storage is not None else MemoryStorage()
        self._chats: list[Chat] = []
        self.current_chat_id: str | None = None
        self.settings = ChatSettings()
        self._listeners: list[StoreListener] = []
        self._load()

    @classmethod
    def from_path(cls, path: str | Path) -> ChatStore:
        """Create a store backed by a JSON file."""
        return cls(JsonFileStorage(path))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        """Load chats and settings, falling back to defaults on any failure."""
        raw_chats = self.storage.get_item(STORAGE_KEY_CHATS)
        if raw_chats:
            try:
                self._chats = self._dedupe(_CHAT_LIST.validate_json(raw_chats))
                logger.info(f"Loaded {len(self._chats)} chats from storage")
            except ValidationError as e:
                logger.error(f"Failed to load chats, starting empty: {e}", exc_info=True)
                self._chats = []

        raw_settings = self.storage.get_item(STORAGE_KEY_SETTINGS)
        if raw_settings:
            try:
                self.settings = ChatSettings.model_validate_json(raw_settings)
            except ValidationError as e:
                logger.error(f"Failed to load settings, using defaults: {e}", exc_info=True)
                self.settings = ChatSettings()

    @staticmethod
    def _dedupe(chats: Iterable[Chat]) -> list[Chat]:
        seen: set[str] = set()
        unique: list[Chat] = []
        for chat in chats:
            if chat.id in seen:
                logger.warning(f"Dropping duplicate persisted chat {chat.id}")
                continue
            seen.add(chat.id)
            unique.append(chat)
        return unique

    def _persist(self) -> None:
        """Write both storage keys. Failures are logged; memory stays authoritative."""
        try:
            self.storage.set_item(STORAGE_KEY_CHATS, json_compact([chat.to_dict() for chat in self._chats]))
            self.storage.set_item(STORAGE_KEY_SETTINGS, json_compact(self.settings.to_dict()))
        except StorageError as e:
            logger.error(f"Failed to persist store: {e}", exc_info=True)

    def _commit(self) -> StoreState:
        self._persist()
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Store listener failed: {e}", exc_info=True)
        return state

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return StoreState(chats=tuple(self._chats), current_chat_id=self.current_chat_id, settings=self.settings)

    @property
    def chats(self) -> tuple[Chat, ...]:
        return tuple(self._chats)

    @property
    def current_chat(self) -> Chat | None:
        return self.get_chat(self.current_chat_id) if self.current_chat_id else None

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener called with every new snapshot.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_chat(self, chat_id: str) -> Chat | None:
        return next((chat for chat in self._chats if chat.id == chat_id), None)

    def require_chat(self, chat_id: str) -> Chat:
        chat = self.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        return chat

    def get_child_chats(self, chat_id: str) -> list[Chat]:
        """Direct children of a chat, in store order."""
        return [chat for chat in self._chats if chat.parent_id == chat_id]

    def get_all_descendant_ids(self, chat_id: str) -> list[str]:
        """Every chat whose parent chain leads back to ``chat_id``.

        Depth-first over parent_id links; a corrupted cycle is visited once.
        """
        descendants: list[str] = []
        visited = {chat_id}
        stack = [chat_id]

        while stack:
            current_id = stack.pop()
            for child in self.get_child_chats(current_id):
                if child.id in visited:
                    continue
                visited.add(child.id)
                descendants.append(child.id)
                stack.append(child.id)

        return descendants

    def get_thread_root(self, chat_id: str) -> Chat:
        """Walk parent links up to the oldest ancestor still in the store."""
        chat = self.require_chat(chat_id)
        visited = {chat.id}
        while chat.parent_id and chat.parent_id not in visited:
            parent = self.get_chat(chat.parent_id)
            if parent is None:
                break
            visited.add(parent.id)
            chat = parent
        return chat

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_chat(self, chat: Chat) -> StoreState:
        """Insert a chat and select it.

        Raises:
            DuplicateIdError: If a chat with the same id exists
            ChatNotFoundError: If ``parent_id`` names no stored chat, or the chat itself
        """
        if self.get_chat(chat.id) is not None:
            raise DuplicateIdError(chat.id)
        # A self-parent is caught here too: the chat is not stored yet
        if chat.parent_id is not None and self.get_chat(chat.parent_id) is None:
            raise ChatNotFoundError(chat.parent_id)

        self._chats.append(chat)
        self.current_chat_id = chat.id
        logger.info(f"Added chat {chat.id}", chat_id=chat.id, model=chat.model)
        return self._commit()

    def update_chat(self, chat: Chat) -> StoreState:
        """Replace the chat with the same id, keeping its position.

        Raises:
            ChatNotFoundError: If no chat has that id
        """
        for index, existing in enumerate(self._chats):
            if existing.id == chat.id:
                self._chats[index] = chat
                logger.debug(f"Updated chat {chat.id}", chat_id=chat.id)
                return self._commit()
        raise ChatNotFoundError(chat.id)

    def delete_chat(self, chat_id: str, delete_children: bool = False) -> StoreState:
        """Delete a chat.

        Args:
            chat_id: Chat to delete
            delete_children: Also delete every descendant; otherwise direct
                children are re-parented to the deleted chat's parent

        Raises:
            ChatNotFoundError: If no chat has that id
        """
        target = self.require_chat(chat_id)

        if delete_children:
            doomed = {chat_id, *self.get_all_descendant_ids(chat_id)}
            self._chats = [chat for chat in self._chats if chat.id not in doomed]
        else:
            doomed = {chat_id}
            self._chats = [
                chat.evolve(parent_id=target.parent_id) if chat.parent_id == chat_id else chat
                for chat in self._chats
                if chat.id != chat_id
            ]

        if self.current_chat_id in doomed:
            self.current_chat_id = self._chats[0].id if self._chats else None

        logger.info(f"Deleted {len(doomed)} chat(s) starting at {chat_id}", chat_id=chat_id)
        return self._commit()

    def set_current_chat_id(self, chat_id: str | None) -> StoreState:
        """Select a chat, or clear the selection with None.

        Raises:
            ChatNotFoundError: If the id is not in the store
        """
        if chat_id is not None:
            self.require_chat(chat_id)
        self.current_chat_id = chat_id
        return self._commit()

    def update_settings(self, **changes: Any) -> StoreState:
        """Merge partial settings (snake_case or camelCase keys)."""
        merged = {**self.settings.model_dump(), **changes}
        self.settings = ChatSettings.model_validate(merged)
        logger.info("Updated chat settings", settings=self.settings.to_dict())
        return self._commit()

    def replace_state(self, chats: Iterable[Chat], settings: ChatSettings | None = None) -> StoreState:
        """Replace the whole collection (used by import)."""
        self._chats = list(chats)
        if settings is not None:
            self.settings = settings
        if self.current_chat_id is not None and self.get_chat(self.current_chat_id) is None:
            self.current_chat_id = None
        return self._commit()

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_chats(self, options: ChatExportOptions | None = None) -> ChatExportData:
        from core.export_import import export_chats

        return export_chats(self._chats, self.settings, options)

    def import_chats(self, data: Any, keep_existing: bool = False) -> ChatImportResult:
        from core.export_import import import_chats

        return import_chats(self, data, keep_existing=keep_existing)


__all__ = ["ChatStore", "StoreListener", "StoreState"]
