"""
Local Storage Service.
Origin-scoped key/value persistence with the same contract as browser
localStorage: string values, no expiry, last write wins.
"""
import json
import logging
import os
import sqlite3
import tempfile
from typing import Any, Optional
from urllib.parse import quote

from ..config import settings
from ..exceptions import StorageParseError

logger = logging.getLogger(__name__)


class LocalStorage:
    """Key/value storage interface."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str):
        raise NotImplementedError

    def remove_item(self, key: str):
        raise NotImplementedError


class MemoryStorage(LocalStorage):
    """Process-local storage, lost on restart."""

    def __init__(self):
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str):
        self._items[key] = value

    def remove_item(self, key: str):
        self._items.pop(key, None)


class FileStorage(LocalStorage):
    """One file per key inside a storage directory."""

    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, quote(key, safe="") + ".item")

    def get_item(self, key: str) -> Optional[str]:
        try:
            with open(self._path(key), "r", encoding="utf-8", errors="replace") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str):
        # Write to a temp file then swap so readers never see half a value
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, self._path(key))
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def remove_item(self, key: str):
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass


class SqliteStorage(LocalStorage):
    """Items kept in a single SQLite table, one connection per call."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._execute(
            "CREATE TABLE IF NOT EXISTS items (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _execute(self, query: str, args: tuple = ()) -> list:
        conn = self._connect()
        try:
            with conn:
                return conn.execute(query, args).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Query error in {self.db_path}: {e}")
            # Callers treat storage failures as I/O errors
            raise OSError(str(e)) from e
        finally:
            conn.close()

    def get_item(self, key: str) -> Optional[str]:
        rows = self._execute("SELECT value FROM items WHERE key = ?", (key,))
        return rows[0][0] if rows else None

    def set_item(self, key: str, value: str):
        self._execute(
            "INSERT INTO items (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value)
        )

    def remove_item(self, key: str):
        self._execute("DELETE FROM items WHERE key = ?", (key,))


def decode_json(key: str, raw: str) -> Any:
    """
    Decode a stored JSON value.

    Raises:
        StorageParseError: if the value is not valid JSON
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageParseError(key, str(e)) from e


def read_json(storage: LocalStorage, key: str) -> Optional[Any]:
    """
    Read a JSON value. Missing and corrupt values both come back as None;
    corruption is logged and never raised.
    """
    raw = storage.get_item(key)
    if raw is None:
        return None
    try:
        return decode_json(key, raw)
    except StorageParseError as e:
        logger.warning(f"Ignoring unreadable stored value: {e}")
        return None


def write_json(storage: LocalStorage, key: str, value: Any):
    """Store a value as JSON."""
    storage.set_item(key, json.dumps(value))


# Global storage instance
storage: Optional[LocalStorage] = None


def get_storage() -> LocalStorage:
    """Get or create the global storage backend."""
    global storage
    if storage is None:
        if settings.storage_db:
            logger.info(f"Using SQLite storage at {settings.storage_db}")
            storage = SqliteStorage(settings.storage_db)
        elif settings.storage_dir:
            logger.info(f"Using file storage at {settings.storage_dir}")
            storage = FileStorage(settings.storage_dir)
        else:
            storage = MemoryStorage()
    return storage
