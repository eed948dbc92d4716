"""Local key-value storage backing the conversation store.

Values are opaque strings (the store writes JSON), mirroring browser local
storage: one key for the chat array, one for the settings object.
"""

from __future__ import annotations

import json
import os
import tempfile

from pathlib import Path
from typing import Protocol

from core.exceptions import StorageError
from utils.json_utils import json_pretty
from utils.logger import logger


class KeyValueStorage(Protocol):
    """Protocol for string key-value storage implementations."""

    def get_item(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``.

        Raises:
            StorageError: If the value could not be written
        """
        ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage. Nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """Storage persisted as one JSON object of key -> string on disk.

    Every write replaces the whole file through a temp file so a crash never
    leaves a half-written document behind.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._items: dict[str, str] = self._read()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            logger.info(f"No existing storage file at {self.path}")
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read storage file {self.path}: {e}", exc_info=True)
            return {}

        if not isinstance(data, dict):
            logger.error(f"Ignoring storage file {self.path}: top-level value is not an object")
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(json_pretty(self._items))
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write storage file {self.path}: {e}") from e

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value
        self._write()

    def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._write()


__all__ = ["JsonFileStorage", "KeyValueStorage", "MemoryStorage"]
