"""Key-value record stores: in-memory and SQLite-backed."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

import aiosqlite

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""


class KeyValueStore(ABC):
    """String key to string value store."""

    async def start(self) -> None:
        """Open backing resources."""

    async def stop(self) -> None:
        """Release backing resources."""

    @abstractmethod
    async def set(self, key: str, value: str) -> bool:
        """Store ``value`` under ``key``; return False when the write failed."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value under ``key`` or None."""

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> List[str]:
        """Return stored keys starting with ``prefix``, sorted."""


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def set(self, key: str, value: str) -> bool:
        async with self._lock:
            self._data[key] = value
        return True

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            return self._data.get(key)

    async def list_keys(self, prefix: str = "") -> List[str]:
        async with self._lock:
            return sorted(key for key in self._data if key.startswith(prefix))


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite-backed store, durable across restarts."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None

    async def start(self) -> None:
        if self._db is not None:
            return
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._db_path))
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.executescript(_SCHEMA_SQL)
        await self._db.commit()

    async def stop(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def set(self, key: str, value: str) -> bool:
        db = self._connection()
        try:
            await db.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now')",
                (key, value),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            logger.warning("kv_set_failed key=%s error=%s", key, exc)
            return False
        return True

    async def get(self, key: str) -> Optional[str]:
        db = self._connection()
        async with db.execute("SELECT value FROM kv WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def list_keys(self, prefix: str = "") -> List[str]:
        db = self._connection()
        pattern = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        async with db.execute(
            "SELECT key FROM kv WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
            (pattern,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("SQLiteKeyValueStore.start() must be awaited before use")
        return self._db
