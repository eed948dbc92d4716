"""
Structured logging for Multichat.

Standard library logging with python-json-logger file handlers:

- stderr: human-readable, DEBUG when ``DEBUG=true``
- logs/conversations.jsonl: INFO and above, one JSON object per record
- logs/errors.jsonl: ERROR and above

Keyword arguments passed to ``logger.info(...)`` and friends become JSON
fields (``chat_id``, ``model``, ``tokens``...).
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pythonjsonlogger import json as jsonlogger

from core.constants import (
    LOG_BACKUP_COUNT_CONVERSATIONS,
    LOG_BACKUP_COUNT_ERRORS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    PROJECT_ROOT,
)

CONSOLE_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s - %(message)s"
CONVERSATION_FIELDS = "%(timestamp)s %(levelname)s %(message)s %(chat_id)s %(model)s %(tokens)s"
ERROR_FIELDS = "%(timestamp)s %(levelname)s %(name)s %(message)s"


@dataclass
class ConversationTurn:
    """One user/assistant exchange as written to conversations.jsonl."""

    user_input: str
    response: str
    chat_id: str = ""
    model: str = ""
    duration_ms: float | None = None
    tokens_used: int | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def summary_line(self) -> str:
        parts = [f"User: {_preview(self.user_input)} → AI: {_preview(self.response)}"]
        if self.duration_ms:
            parts.append(f"[{self.duration_ms:.0f}ms]")
        if self.tokens_used:
            parts.append(f"[{self.tokens_used} tokens]")
        return " ".join(parts)

    def fields(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "conversation_turn": True,
            "timestamp": self.timestamp,
            "chat_id": self.chat_id,
            "model": self.model,
            "chars": len(self.user_input) + len(self.response),
        }
        if self.duration_ms is not None:
            data["ms"] = int(self.duration_ms)
        if self.tokens_used is not None:
            data["tokens"] = self.tokens_used
        return data


class LevelFloorFilter(logging.Filter):
    """Pass records at or above ``level``."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.level


def _preview(text: str) -> str:
    preview = text[:LOG_PREVIEW_LENGTH].replace("\n", " ")
    return f"{preview}..." if len(text) > LOG_PREVIEW_LENGTH else preview


def _json_file_handler(path: Path, level: int, fields: str, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=LOG_MAX_SIZE, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.addFilter(LevelFloorFilter(level))
    handler.setFormatter(jsonlogger.JsonFormatter(fields, timestamp=True, json_ensure_ascii=False))
    return handler


def setup_logging(name: str = "multichat", debug: bool | None = None) -> logging.Logger:
    """Configure ``name`` with a console handler followed by the two JSON files.

    Calling it again replaces the handlers instead of stacking them.

    Args:
        name: Logger name
        debug: Console at DEBUG level (default: the DEBUG environment variable)
    """
    if debug is None:
        debug = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

    configured = logging.getLogger(name)
    configured.setLevel(logging.DEBUG)
    configured.handlers = []

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else logging.INFO)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    configured.addHandler(console)

    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)
    configured.addHandler(
        _json_file_handler(
            log_dir / "conversations.jsonl", logging.INFO, CONVERSATION_FIELDS, LOG_BACKUP_COUNT_CONVERSATIONS
        )
    )
    configured.addHandler(
        _json_file_handler(log_dir / "errors.jsonl", logging.ERROR, ERROR_FIELDS, LOG_BACKUP_COUNT_ERRORS)
    )
    return configured


class ChatLogger:
    """Keyword-field facade over a configured ``logging.Logger``."""

    def __init__(self, name: str = "multichat"):
        self.logger = setup_logging(name)

    def debug(self, message: str, **fields: Any) -> None:
        self.logger.debug(message, extra=fields)

    def info(self, message: str, **fields: Any) -> None:
        self.logger.info(message, extra=fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.logger.warning(message, extra=fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self.logger.error(message, extra=fields, exc_info=exc_info)

    def log_conversation_turn(
        self,
        user_input: str,
        response: str,
        chat_id: str = "",
        model: str = "",
        duration_ms: float | None = None,
        tokens_used: int | None = None,
    ) -> None:
        """Write one completed turn to conversations.jsonl."""
        turn = ConversationTurn(user_input, response, chat_id, model, duration_ms, tokens_used)
        self.logger.info(turn.summary_line(), extra=turn.fields())


logger = ChatLogger()
