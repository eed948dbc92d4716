"""
Export/import codec for the versioned JSON envelope.

Export selects chats and stamps the current version. Import validates the
whole payload before touching the store, renames colliding ids and writes
the final chat set in one replacement.
"""

from __future__ import annotations

import json

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from core.constants import (
    ERROR_FILE_READ,
    ERROR_INCOMPATIBLE_VERSION,
    ERROR_INVALID_FORMAT,
    EXPORT_FILENAME_TEMPLATE,
    EXPORT_VERSION,
)
from core.exceptions import PayloadValidationError
from models.chat_models import (
    Chat,
    ChatExportData,
    ChatExportOptions,
    ChatImportResult,
    ChatSettings,
    generate_chat_id,
    now_ms,
)
from utils.json_utils import json_pretty
from utils.logger import logger

if TYPE_CHECKING:
    from core.chat_store import ChatStore


def export_chats(
    chats: Sequence[Chat],
    settings: ChatSettings | None = None,
    options: ChatExportOptions | None = None,
) -> ChatExportData:
    """Build an export envelope.

    Args:
        chats: Chats in store order
        settings: Current settings, included only when requested
        options: ``selected_chat_ids`` restricts the export to those ids;
            ``include_settings`` exports ``settings`` instead of defaults
    """
    options = options or ChatExportOptions()
    if options.selected_chat_ids is not None:
        selected = set(options.selected_chat_ids)
        exported = [chat for chat in chats if chat.id in selected]
    else:
        exported = list(chats)

    include_settings = options.include_settings and settings is not None
    data = ChatExportData(
        version=EXPORT_VERSION,
        exported_at=now_ms(),
        chats=exported,
        settings=settings if include_settings else ChatSettings(),
    )
    logger.info(f"Exported {len(exported)} chats", include_settings=include_settings)
    return data


def parse_export_data(data: Any) -> ChatExportData:
    """Validate a raw payload (dict, JSON text or envelope).

    Raises:
        PayloadValidationError: Shape is invalid or the version is not supported
    """
    try:
        if isinstance(data, ChatExportData):
            envelope = data
        elif isinstance(data, (str, bytes)):
            envelope = ChatExportData.model_validate_json(data)
        else:
            envelope = ChatExportData.model_validate(data)
    except ValidationError as e:
        details = [{"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]} for err in e.errors()]
        raise PayloadValidationError(ERROR_INVALID_FORMAT, details) from e

    if envelope.version != EXPORT_VERSION:
        raise PayloadValidationError(ERROR_INCOMPATIBLE_VERSION, [{"field": "version", "message": envelope.version}])
    return envelope


def resolve_collisions(incoming: Sequence[Chat], existing_ids: set[str]) -> tuple[list[Chat], list[str]]:
    """Rename incoming chats whose id is taken.

    A renamed chat loses ``parent_id`` and ``context_ids`` since they may now
    point at the wrong chat. Duplicates inside the payload itself are renamed
    the same way.

    Returns:
        Processed chats and the list of colliding (original) ids
    """
    taken = set(existing_ids)
    processed: list[Chat] = []
    duplicates: list[str] = []

    for chat in incoming:
        if chat.id in taken:
            new_id = generate_chat_id()
            while new_id in taken:
                new_id = generate_chat_id()
            duplicates.append(chat.id)
            logger.info(f"Import collision on {chat.id}, renamed to {new_id}", chat_id=new_id)
            chat = chat.evolve(id=new_id, parent_id=None, context_ids=[])
        taken.add(chat.id)
        processed.append(chat)

    return processed, duplicates


def import_chats(store: ChatStore, data: Any, keep_existing: bool = False) -> ChatImportResult:
    """Import an export payload into ``store``.

    Args:
        store: Target store, untouched on failure
        data: Raw payload (dict or JSON text) or a ChatExportData
        keep_existing: Merge with the stored chats instead of replacing them

    Returns:
        Result with imported count and colliding ids; never raises for bad input
    """
    try:
        envelope = parse_export_data(data)
    except PayloadValidationError as e:
        logger.warning(f"Import rejected: {e}", details=e.details)
        return ChatImportResult(success=False, error=str(e))

    processed, duplicates = resolve_collisions(envelope.chats, {chat.id for chat in store.chats})
    existing = list(store.chats) if keep_existing else []

    settings = envelope.settings if "settings" in envelope.model_fields_set else None
    store.replace_state([*existing, *processed], settings=settings)

    logger.info(
        f"Imported {len(processed)} chats ({len(duplicates)} renamed)",
        keep_existing=keep_existing,
    )
    return ChatImportResult(success=True, imported_chats_count=len(processed), duplicate_chats=duplicates)


# ----------------------------------------------------------------------
# Files
# ----------------------------------------------------------------------


def export_filename(now: datetime | None = None) -> str:
    """``chat-export-YYYY-MM-DD.json`` for the given (default: current) date."""
    return EXPORT_FILENAME_TEMPLATE.format(date=(now or datetime.now()).strftime("%Y-%m-%d"))


def write_export_file(data: ChatExportData, directory: str | Path, filename: str | None = None) -> Path:
    """Write an envelope as pretty UTF-8 JSON and return its path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / (filename or export_filename())
    path.write_text(json_pretty(data.to_dict()), encoding="utf-8")
    logger.info(f"Wrote export file {path}", chats=len(data.chats))
    return path


def read_export_file(path: str | Path) -> Any:
    """Read and JSON-decode an export file.

    Raises:
        PayloadValidationError: The file cannot be read or is not JSON
    """
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise PayloadValidationError(ERROR_FILE_READ, [{"field": str(path), "message": str(e)}]) from e


def import_chats_from_file(store: ChatStore, path: str | Path, keep_existing: bool = False) -> ChatImportResult:
    try:
        payload = read_export_file(path)
    except PayloadValidationError as e:
        logger.warning(f"Import file rejected: {e}", details=e.details)
        return ChatImportResult(success=False, error=str(e))
    return import_chats(store, payload, keep_existing=keep_existing)


__all__ = [
    "export_chats",
    "export_filename",
    "import_chats",
    "import_chats_from_file",
    "parse_export_data",
    "read_export_file",
    "resolve_collisions",
    "write_export_file",
]
