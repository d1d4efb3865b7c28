"""Key-value tier: a flat namespace of string keys to blobs in a local SQLite file."""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType

import aiosqlite
from result import Err, Ok, Result

from quotasync.data.errors import NotFound, ReadFailed, WriteFailed

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_IN_MEMORY = ":memory:"


class KeyValueTier:
    """Async key-value register shared by every process of the same user.

    Every write commits before it returns, so a reader in another process
    observes it on its next lookup. SQLite's busy timeout bounds every call.
    """

    def __init__(self, db_path: Path, busy_timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> KeyValueTier:
        await self.connect()
        return self

    async def connect(self) -> KeyValueTier:
        """Open the database and ensure schema."""
        in_memory = str(self._db_path) == _IN_MEMORY
        if not in_memory:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self._db_path), timeout=self._busy_timeout)
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA synchronous=NORMAL")
        await self._ensure_schema()
        await self._conn.commit()
        if not in_memory:
            # Profiles stored here carry credentials.
            os.chmod(self._db_path, 0o600)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            msg = "Key-value tier not connected. Use 'async with KeyValueTier(path) as kv:'"
            raise RuntimeError(msg)
        return self._conn

    async def read(self, key: str) -> Result[bytes, NotFound | ReadFailed]:
        try:
            cursor = await self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except sqlite3.Error as exc:
            logger.warning("Key-value read of %r failed: %s", key, exc)
            return Err(ReadFailed(key, str(exc)))
        if row is None:
            return Err(NotFound(key))
        value = row[0]
        if isinstance(value, str):
            value = value.encode("utf-8")
        return Ok(bytes(value))

    async def write(self, key: str, data: bytes) -> Result[None, WriteFailed]:
        try:
            await self.conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                (key, data, datetime.now(UTC).isoformat()),
            )
            await self.conn.commit()
        except sqlite3.Error as exc:
            logger.warning("Key-value write of %r failed: %s", key, exc)
            return Err(WriteFailed(key, str(exc)))
        return Ok(None)

    async def delete(self, key: str) -> Result[None, WriteFailed]:
        try:
            await self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            await self.conn.commit()
        except sqlite3.Error as exc:
            logger.warning("Key-value delete of %r failed: %s", key, exc)
            return Err(WriteFailed(key, str(exc)))
        return Ok(None)

    async def keys(self, prefix: str = "") -> list[str]:
        """List stored keys, optionally restricted to ``prefix``."""
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        try:
            cursor = await self.conn.execute(
                "SELECT key FROM kv WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
                (f"{escaped}%",),
            )
            rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            logger.warning("Key-value listing failed: %s", exc)
            return []
        return [row[0] for row in rows]

    async def _ensure_schema(self) -> None:
        """Create the table, dropping it when the stored schema version differs."""
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS app_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        cursor = await self.conn.execute(
            "SELECT value FROM app_meta WHERE key = 'schema_version'"
        )
        row = await cursor.fetchone()
        current_version = int(row[0]) if row and str(row[0]).isdigit() else 0
        if current_version == SCHEMA_VERSION:
            await self.conn.executescript(SCHEMA_SQL)
            return

        if current_version > 0:
            logger.info(
                "Rebuilding key-value schema from %s to %s", current_version, SCHEMA_VERSION
            )
            await self.conn.execute("DROP TABLE IF EXISTS kv")
        await self.conn.executescript(SCHEMA_SQL)
        await self.conn.execute(
            "INSERT OR REPLACE INTO app_meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
