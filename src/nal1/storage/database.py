"""SQLite database connection manager with schema migration."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from nal1.log import get_logger

logger = get_logger(__name__)

# Each entry is independently keyed and holds one JSON document.
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key             TEXT PRIMARY KEY,
    value_json      TEXT NOT NULL,
    updated_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);
"""


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: str | Path):
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        """Open connection and run migrations.

        The connection is closed again if the file turns out not to be a
        usable database, so a failed start leaves no worker thread behind.
        """
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        try:
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.executescript(SCHEMA_SQL)
            await self._conn.commit()
        except aiosqlite.Error:
            await self.close()
            raise
        logger.info("database_initialized", path=self._db_path)

    def quarantine(self) -> Path | None:
        """Move an unreadable database file aside. Call only while closed."""
        path = Path(self._db_path)
        if self._db_path == ":memory:" or not path.exists():
            return None
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        target = path.with_name(f"{path.name}.corrupt-{stamp}")
        path.rename(target)
        for suffix in ("-wal", "-shm"):
            Path(self._db_path + suffix).unlink(missing_ok=True)
        logger.warning("database_quarantined", path=self._db_path, moved_to=str(target))
        return target

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
