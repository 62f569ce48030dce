"""Key/value repository holding JSON documents for the chat store."""

from __future__ import annotations

import json
from typing import Any

from nal1.log import get_logger
from nal1.storage.database import Database

logger = get_logger(__name__)

CHATS_KEY = "nal1_chats_v3"
ACTIVE_CHAT_KEY = "nal1_active_chat"
THEME_KEY = "nal1_theme"
MODEL_KEY = "nal1_model"
MODE_KEY = "nal1_mode"


class _Missing:
    pass


MISSING: Any = _Missing()


class StateRepository:
    """Independently keyed JSON entries over a single table."""

    def __init__(self, db: Database):
        self._db = db

    async def get(self, key: str) -> Any:
        """Return the decoded value, or MISSING if absent or undecodable."""
        cursor = await self._db.conn.execute(
            "SELECT value_json FROM kv_store WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        if row is None:
            return MISSING
        try:
            return json.loads(row["value_json"])
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning("state_entry_corrupt", key=key, error=str(e))
            return MISSING

    async def set(self, key: str, value: Any) -> None:
        await self.set_many({key: value})

    async def set_many(self, entries: dict[str, Any]) -> None:
        """Overwrite several entries in one transaction."""
        rows = [(key, json.dumps(value, ensure_ascii=False)) for key, value in entries.items()]
        await self._db.conn.executemany(
            """INSERT INTO kv_store (key, value_json) VALUES (?, ?)
               ON CONFLICT(key) DO UPDATE SET
                   value_json = excluded.value_json,
                   updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')""",
            rows,
        )
        await self._db.conn.commit()
