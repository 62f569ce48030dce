"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

import aiosqlite
import httpx

from nal1.ai.client import AIClient, PollinationsClient
from nal1.ai.handler import MessageHandler
from nal1.ai.router import InferenceRouter
from nal1.config import AppConfig
from nal1.core.chat_store import ChatStore
from nal1.core.session import RequestGuard
from nal1.log import get_logger
from nal1.storage.database import Database
from nal1.storage.state_repo import StateRepository

logger = get_logger(__name__)


class Nal1App:
    """Top-level application orchestrator."""

    def __init__(self, config: AppConfig, http_client: httpx.AsyncClient | None = None):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.state_repo = StateRepository(self.db)
        self.store = ChatStore(self.state_repo, config.chat)
        self.ai_client: AIClient = PollinationsClient(
            config.inference.text_base_url,
            timeout=config.inference.timeout,
            http_client=http_client,
        )
        self.router = InferenceRouter(self.ai_client, config)
        self.guard = RequestGuard(config.chat.guard_scope)
        self.handler = MessageHandler(self.store, self.router, self.guard)

    async def start(self) -> None:
        """Open storage and rehydrate the chat store.

        An unreadable database file is moved aside and replaced by a fresh
        one, so startup continues with an empty store.
        """
        try:
            await self.db.initialize()
        except aiosqlite.DatabaseError as e:
            logger.error("database_unreadable", path=self.db.path, error=str(e))
            self.db.quarantine()
            await self.db.initialize()
        await self.store.load()
        logger.info(
            "nal1_started",
            chats=len(self.store.chats),
            model=self.store.preferences.selected_model,
            mode=self.store.preferences.selected_mode,
            guard_scope=self.guard.scope,
        )

    async def stop(self) -> None:
        await self.ai_client.aclose()
        await self.db.close()
        logger.info("nal1_stopped")

    async def __aenter__(self) -> Nal1App:
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
