"""Persistent string key-value stores backing both cache indexes."""

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Optional, Protocol, Union

import aiosqlite

from .exceptions import StorageError

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


class KeyValueStore(Protocol):
    """Async string key -> string value store."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store for ephemeral caches and tests."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(key for key in self._data if key.startswith(prefix))


class SQLiteKeyValueStore:
    """Key-value store in a single SQLite table."""

    def __init__(self, database_path: Union[Path, str]):
        """Initialize the store.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self._initialized = False
        self._initialization_lock: Optional[asyncio.Lock] = None

        logger.debug("Key-value store configured (lazy): %s", self.database_path)

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        # Use a lock to prevent concurrent initialization
        if self._initialization_lock is None:
            self._initialization_lock = asyncio.Lock()

        async with self._initialization_lock:
            # Double-check after acquiring lock
            if self._initialized:
                return

            try:
                self.database_path.parent.mkdir(parents=True, exist_ok=True)
                async with aiosqlite.connect(str(self.database_path)) as db:
                    # WAL keeps readers unblocked while a write is in flight
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.execute("PRAGMA synchronous=NORMAL")
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS kv_store (
                            key TEXT PRIMARY KEY,
                            value TEXT NOT NULL,
                            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                        )
                    """
                    )
                    await db.commit()
            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"Failed to initialize key-value store {self.database_path}: {e}") from e

            self._initialized = True
            logger.debug("Key-value store initialized: %s", self.database_path)

    async def get(self, key: str) -> Optional[str]:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self.database_path)) as db:
                async with db.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cursor:
                    row = await cursor.fetchone()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to read key {key!r}: {e}") from e
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self.database_path)) as db:
                await db.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                """,
                    (key, value),
                )
                await db.commit()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to write key {key!r}: {e}") from e

    async def delete(self, key: str) -> None:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self.database_path)) as db:
                await db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                await db.commit()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to delete key {key!r}: {e}") from e

    async def keys(self, prefix: str = "") -> list[str]:
        """Stored keys starting with ``prefix``, for diagnostics."""
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self.database_path)) as db:
                async with db.execute(
                    "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key",
                    (len(prefix), prefix),
                ) as cursor:
                    rows = await cursor.fetchall()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to list keys: {e}") from e
        return [row[0] for row in rows]


def open_store(database_file: Union[Path, str]) -> KeyValueStore:
    """SQLite store for a path, in-memory store for ``":memory:"``."""
    if str(database_file) == MEMORY_DATABASE:
        return InMemoryKeyValueStore()
    return SQLiteKeyValueStore(database_file)
