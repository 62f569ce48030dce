"""In-flight request guard shared by everything that sends to the router."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Literal

from nal1.log import get_logger

logger = get_logger(__name__)

_GLOBAL_KEY = "*"


class RequestInFlightError(RuntimeError):
    """Raised when a send is attempted while the guard is held."""


class RequestGuard:
    """Tracks pending inference requests.

    With ``scope="global"`` one request may be pending across all chats.
    With ``scope="per_chat"`` each chat has its own slot, which still keeps
    replies within a chat in the order their prompts were sent.
    """

    def __init__(self, scope: Literal["global", "per_chat"] = "global"):
        self._scope = scope
        self._held: set[str] = set()

    @property
    def scope(self) -> str:
        return self._scope

    def _key(self, chat_id: str | None) -> str:
        if self._scope == "global" or chat_id is None:
            return _GLOBAL_KEY
        return chat_id

    def is_busy(self, chat_id: str | None = None) -> bool:
        if self._scope == "per_chat" and chat_id is None:
            # a chat that does not exist yet has nothing in flight
            return False
        return self._key(chat_id) in self._held

    @asynccontextmanager
    async def hold(self, chat_id: str | None = None) -> AsyncIterator[None]:
        key = self._key(chat_id)
        if key in self._held:
            raise RequestInFlightError(f"A request is already in flight for '{key}'")
        self._held.add(key)
        logger.debug("guard_acquired", key=key)
        try:
            yield
        finally:
            self._held.discard(key)
            logger.debug("guard_released", key=key)
