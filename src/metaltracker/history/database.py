"""Async SQLite key-value store for the tracker's durable state.

Uses aiosqlite for non-blocking database operations with WAL mode. The
tracker keeps only two keys ("history" and "last_update"), each value a
text blob, so a single key-value table is all the schema there is.
"""

import os
import time
from typing import Self

import aiosqlite

from metaltracker.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at INTEGER NOT NULL
);
"""


class KeyValueDatabase:
    """Async SQLite connection manager exposing a string key-value API.

    Every set() is a single committed statement, so a value is replaced
    atomically: readers see either the old or the new value, never a mix.

    Usage:
        async with KeyValueDatabase("data/metal_rates.db") as kv:
            await kv.set("last_update", "1700000000000")
            value = await kv.get("last_update")
    """

    def __init__(self, db_path: str = "data/metal_rates.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open database connection, configure pragmas, and create schema.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")

        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.commit()
        await self._ensure_schema_version()

        logger.info("kv_store_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("kv_store_closed", db_path=self._db_path)

    async def _ensure_schema_version(self) -> None:
        cursor = await self.db.execute("SELECT version FROM schema_version LIMIT 1")
        row = await cursor.fetchone()
        if row is None:
            await self.db.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            await self.db.commit()
            logger.info("schema_version_set", version=SCHEMA_VERSION)

    async def get(self, key: str) -> str | None:
        """Return the stored value for key, or None if absent."""
        cursor = await self.db.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = await cursor.fetchone()
        return row[0] if row is not None else None

    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        now_ms = int(time.time() * 1000)
        await self.db.execute(
            "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value, now_ms),
        )
        await self.db.commit()

    async def delete(self, key: str) -> None:
        """Remove key if present."""
        await self.db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        await self.db.commit()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        """Async context manager exit."""
        await self.close()
