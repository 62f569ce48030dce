"""Shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from nal1.ai.client import AIClient, AIResponse, EngineError
from nal1.config import AppConfig, ImageConfig
from nal1.core.chat_store import ChatStore
from nal1.storage.database import Database
from nal1.storage.state_repo import StateRepository


class ScriptedClient(AIClient):
    """Replays a list of outcomes and records which engines were asked."""

    def __init__(self, outcomes: list[str | Exception] | None = None):
        self.outcomes = list(outcomes or [])
        self.calls: list[tuple[str, str]] = []

    async def complete(self, instruction: str, engine: str) -> AIResponse:
        self.calls.append((instruction, engine))
        outcome = self.outcomes.pop(0) if self.outcomes else EngineError(engine, "no reply")
        if isinstance(outcome, Exception):
            raise outcome
        return AIResponse(text=outcome, engine=engine)

    @property
    def engines(self) -> list[str]:
        return [engine for _, engine in self.calls]


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    cfg = AppConfig(image=ImageConfig(delay_seconds=0))
    cfg.storage.db_path = str(tmp_path / "nal1.db")
    return cfg


@pytest_asyncio.fixture
async def db(config: AppConfig):
    database = Database(config.storage.db_path)
    await database.initialize()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def store(db: Database, config: AppConfig) -> ChatStore:
    chat_store = ChatStore(StateRepository(db), config.chat)
    await chat_store.load()
    return chat_store
