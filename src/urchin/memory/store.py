"""SQLite key/value storage backend."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from urchin.core.logging import get_logger

logger = get_logger("memory.store")

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class SQLiteStorage:
    """SQLite-backed implementation of the storage contract.

    Each region is a single row holding a JSON document.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path)
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to storage: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Storage not connected. Call connect() first.")
        return self._conn

    async def get(self, keys: str | list[str]) -> dict[str, Any]:
        """Read one or more keys. Missing keys map to None."""
        if isinstance(keys, str):
            keys = [keys]
        result: dict[str, Any] = {k: None for k in keys}
        if not keys:
            return result

        placeholders = ", ".join("?" for _ in keys)
        async with self.conn.execute(
            f"SELECT key, value FROM kv WHERE key IN ({placeholders})", keys
        ) as cursor:
            async for row in cursor:
                result[row[0]] = json.loads(row[1])
        return result

    async def set(self, data: dict[str, Any]) -> None:
        """Upsert all keys in a single transaction."""
        now = datetime.now().isoformat()
        await self.conn.executemany(
            """INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at""",
            [(k, json.dumps(v, ensure_ascii=False), now) for k, v in data.items()],
        )
        await self.conn.commit()
