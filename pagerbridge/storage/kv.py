"""Key-value byte store with an SQLite backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from pagerbridge.errors import StoreError
from pagerbridge.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class KVStore(ABC):
    """Opaque get/set-by-key byte store."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None: ...

    @abstractmethod
    async def set(self, key: str, value: bytes) -> None: ...


class SQLiteKVStore(KVStore):
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def start(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self._db_path))
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        log.info("kv_store_opened", path=str(self._db_path))

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError("store is not started")
        return self._db

    async def get(self, key: str) -> bytes | None:
        db = self._conn()
        try:
            cursor = await db.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"read {key}: {e}") from e
        if row is None:
            return None
        return bytes(row[0])

    async def set(self, key: str, value: bytes) -> None:
        """Upsert ``value`` under ``key``."""
        db = self._conn()
        now = datetime.now(timezone.utc).isoformat()
        try:
            await db.execute(
                "INSERT INTO kv (key, value, created_at, updated_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET "
                "value = excluded.value, "
                "updated_at = excluded.updated_at",
                (key, value, now, now),
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"write {key}: {e}") from e
