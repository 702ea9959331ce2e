"""SQLite key/value storage for session state."""

from __future__ import annotations

import concurrent.futures
import json
import logging
import os
import sqlite3
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

from ..domain.models import FileItem, MediaPlace, QueueItem, RepeatMode

logger = logging.getLogger(__name__)

KEY_MEDIA_PLACES = "media_places"
KEY_PATH_STACK = "path_stack"
KEY_LAST_QUEUE = "last_queue"
KEY_LAST_QUEUE_INDEX = "last_queue_index"
KEY_SHUFFLE_MODE = "shuffle_mode"
KEY_REPEAT_MODE = "repeat_mode"
KEY_PAUSE_AT_END = "pause_at_end_of_queue"
KEY_LAST_FOLDER = "last_folder"

_VALUES_TABLE = "session_values"
_ARTWORK_TABLE = "queue_artwork"


def coerce_bool(value: Any, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return bool(default)


def coerce_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return int(default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


@dataclass(frozen=True)
class PersistedSettings:
    shuffle_mode: bool = False
    repeat_mode: RepeatMode = RepeatMode.OFF
    pause_at_end_of_queue: bool = False


class SessionStore:
    """One row per key, each holding a JSON value that is read back on its own.

    Writes are last-write-wins. Queue artwork lives in its own table so that
    writing the index or a setting never touches it. With ``write_behind``
    every write is queued on a single background thread in call order, and
    reads wait for queued writes first. A missing or corrupt database reads
    as empty and every key falls back to its documented default.
    """

    def __init__(self, path: str, logger_instance=None, *, write_behind: bool = False) -> None:
        self.path = str(path or "").strip()
        self.logger = logger_instance or logger
        self._db_lock = threading.Lock()
        self._schema_ready = False
        self._writer: concurrent.futures.ThreadPoolExecutor | None = None
        self._last_write: concurrent.futures.Future | None = None
        self._writer_lock = threading.Lock()
        if write_behind:
            self._writer = concurrent.futures.ThreadPoolExecutor(
                max_workers=1,
                thread_name_prefix="session-store",
            )

    # Raw key access

    def get(self, key: str, default: Any = None) -> Any:
        return self.get_many([key]).get(key, default)

    def get_many(self, keys: Sequence[str]) -> dict[str, Any]:
        """Return the decoded values of the keys that exist and parse."""
        self.flush()
        rows = self._run(
            lambda connection: connection.execute(
                f'SELECT key, value FROM "{_VALUES_TABLE}" WHERE key IN ({", ".join("?" for _ in keys)})',
                list(keys),
            ).fetchall(),
            default=[],
        )
        values: dict[str, Any] = {}
        for key, raw in rows:
            try:
                values[key] = json.loads(raw)
            except (TypeError, ValueError):
                self.logger.warning("Ignoring unreadable session value for %s", key)
        return values

    def put(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, ensure_ascii=False)
        self._submit(
            lambda connection: connection.execute(
                f'INSERT OR REPLACE INTO "{_VALUES_TABLE}" (key, value) VALUES (?, ?)',
                (key, encoded),
            )
        )

    def remove(self, *keys: str) -> None:
        if not keys:
            return
        self._submit(
            lambda connection: connection.execute(
                f'DELETE FROM "{_VALUES_TABLE}" WHERE key IN ({", ".join("?" for _ in keys)})',
                list(keys),
            )
        )

    def flush(self, timeout: float | None = None) -> None:
        """Block until every queued write has been applied."""
        with self._writer_lock:
            pending = self._last_write
        if pending is not None:
            concurrent.futures.wait([pending], timeout=timeout)

    def close(self) -> None:
        with self._writer_lock:
            writer = self._writer
            self._writer = None
        if writer is not None:
            writer.shutdown(wait=True)

    # Database plumbing

    def _submit(self, statement: Callable[[sqlite3.Connection], Any]) -> None:
        with self._writer_lock:
            writer = self._writer
            if writer is not None:
                self._last_write = writer.submit(self._write, statement)
                return
        self._write(statement)

    def _write(self, statement: Callable[[sqlite3.Connection], Any]) -> None:
        self._run(statement, default=None, commit=True)

    def _run(self, statement: Callable[[sqlite3.Connection], Any], *, default: Any, commit: bool = False) -> Any:
        if not self.path:
            return default
        with self._db_lock:
            try:
                connection = self._connect_locked()
            except (sqlite3.Error, OSError):
                self.logger.exception("Failed to open session state: %s", self.path)
                return default
            try:
                if commit:
                    with connection:
                        return statement(connection)
                return statement(connection)
            except sqlite3.Error:
                self.logger.exception("Session state %s failed: %s", "write" if commit else "read", self.path)
                return default
            finally:
                connection.close()

    def _connect_locked(self) -> sqlite3.Connection:
        parent = os.path.dirname(os.path.abspath(self.path))
        if parent:
            os.makedirs(parent, exist_ok=True)
        connection = sqlite3.connect(self.path)
        if self._schema_ready:
            return connection
        try:
            self._ensure_schema(connection)
        except sqlite3.DatabaseError:
            connection.close()
            self.logger.exception("Session state is corrupt; starting over: %s", self.path)
            os.replace(self.path, f"{self.path}.corrupt")
            connection = sqlite3.connect(self.path)
            self._ensure_schema(connection)
        self._schema_ready = True
        return connection

    @staticmethod
    def _ensure_schema(connection: sqlite3.Connection) -> None:
        with connection:
            connection.execute(
                f'CREATE TABLE IF NOT EXISTS "{_VALUES_TABLE}" '
                "(key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
            connection.execute(
                f'CREATE TABLE IF NOT EXISTS "{_ARTWORK_TABLE}" '
                "(location_token TEXT PRIMARY KEY, artwork BLOB NOT NULL)"
            )

    # Bookmarks

    def load_media_places(self) -> list[MediaPlace]:
        return self._load_records(KEY_MEDIA_PLACES, MediaPlace.from_payload)

    def save_media_places(self, places: Iterable[MediaPlace]) -> None:
        self.put(KEY_MEDIA_PLACES, [place.to_payload() for place in places])

    # Breadcrumbs

    def load_path_stack(self) -> list[FileItem]:
        return self._load_records(KEY_PATH_STACK, FileItem.from_payload)

    def save_path_stack(self, items: Iterable[FileItem]) -> None:
        self.put(KEY_PATH_STACK, [item.to_payload() for item in items])

    def clear_path_stack(self) -> None:
        self.remove(KEY_PATH_STACK)

    # Queue

    def load_last_queue(self) -> list[QueueItem]:
        items = self._load_records(KEY_LAST_QUEUE, QueueItem.from_payload)
        if not items:
            return items
        artwork = dict(
            self._run(
                lambda connection: connection.execute(
                    f'SELECT location_token, artwork FROM "{_ARTWORK_TABLE}"'
                ).fetchall(),
                default=[],
            )
        )
        return [
            item.with_artwork(bytes(artwork[item.location_token])) if item.location_token in artwork else item
            for item in items
        ]

    def save_last_queue(self, items: Iterable[QueueItem]) -> None:
        items = list(items)
        self.put(KEY_LAST_QUEUE, [item.with_artwork(None).to_payload() for item in items])
        artwork = {item.location_token: item.artwork_bytes for item in items if item.artwork_bytes}

        def _replace_artwork(connection: sqlite3.Connection) -> None:
            connection.execute(f'DELETE FROM "{_ARTWORK_TABLE}"')
            connection.executemany(
                f'INSERT OR REPLACE INTO "{_ARTWORK_TABLE}" (location_token, artwork) VALUES (?, ?)',
                [(token, sqlite3.Binary(data)) for token, data in artwork.items()],
            )

        self._submit(_replace_artwork)

    def load_last_queue_index(self) -> int:
        return coerce_int(self.get(KEY_LAST_QUEUE_INDEX, -1), default=-1)

    def save_last_queue_index(self, index: int) -> None:
        self.put(KEY_LAST_QUEUE_INDEX, int(index))

    # Transport settings

    def load_settings(self) -> PersistedSettings:
        values = self.get_many([KEY_SHUFFLE_MODE, KEY_REPEAT_MODE, KEY_PAUSE_AT_END])
        return PersistedSettings(
            shuffle_mode=coerce_bool(values.get(KEY_SHUFFLE_MODE), default=False),
            repeat_mode=RepeatMode.coerce(values.get(KEY_REPEAT_MODE, 0)),
            pause_at_end_of_queue=coerce_bool(values.get(KEY_PAUSE_AT_END), default=False),
        )

    def save_shuffle_mode(self, enabled: bool) -> None:
        self.put(KEY_SHUFFLE_MODE, bool(enabled))

    def save_repeat_mode(self, mode: RepeatMode) -> None:
        self.put(KEY_REPEAT_MODE, int(mode))

    def save_pause_at_end_of_queue(self, enabled: bool) -> None:
        self.put(KEY_PAUSE_AT_END, bool(enabled))

    # Last opened folder

    def load_last_folder(self) -> tuple[str, str] | None:
        raw = self.get(KEY_LAST_FOLDER)
        if not isinstance(raw, dict) or not raw.get("location_token"):
            return None
        token = str(raw["location_token"])
        return token, str(raw.get("name") or token)

    def save_last_folder(self, location_token: str, name: str) -> None:
        self.put(KEY_LAST_FOLDER, {"location_token": location_token, "name": name})

    def clear_last_folder(self) -> None:
        self.remove(KEY_LAST_FOLDER)

    def _load_records(self, key: str, factory) -> list:
        raw = self.get(key, [])
        if not isinstance(raw, list):
            self.logger.warning("Ignoring malformed session value for %s", key)
            return []
        records = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            try:
                records.append(factory(entry))
            except (KeyError, TypeError, ValueError):
                self.logger.warning("Skipping malformed %s entry: %r", key, entry)
                continue
        return records
