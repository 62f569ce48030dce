"""Conversation store: owns chats, the active-chat pointer and preferences.

Every mutation rewrites the whole state through :class:`StateRepository`;
:meth:`ChatStore.load` rehydrates it, falling back to defaults for any entry
that is missing or cannot be decoded.
"""

from __future__ import annotations

import time
from typing import Any

from nal1.config import ChatConfig
from nal1.core.types import Sender, ThemeMode
from nal1.log import get_logger
from nal1.storage.models import Chat, Message, Preferences, utcnow
from nal1.storage.state_repo import (
    ACTIVE_CHAT_KEY,
    CHATS_KEY,
    MISSING,
    MODE_KEY,
    MODEL_KEY,
    THEME_KEY,
    StateRepository,
)

logger = get_logger(__name__)


class ChatStore:
    """Ordered chat collection plus session preferences."""

    def __init__(self, repo: StateRepository, config: ChatConfig):
        self._repo = repo
        self._config = config
        self._chats: list[Chat] = []
        self._prefs = self._default_preferences()
        self._last_id = 0

    # -- queries ---------------------------------------------------------

    @property
    def chats(self) -> list[Chat]:
        """Chats in collection order (newest created first)."""
        return list(self._chats)

    @property
    def preferences(self) -> Preferences:
        return self._prefs

    def get_chat(self, chat_id: str | None) -> Chat | None:
        if chat_id is None:
            return None
        return next((c for c in self._chats if c.id == chat_id), None)

    def active_chat(self) -> Chat | None:
        return self.get_chat(self._prefs.active_chat_id)

    def sorted_view(self) -> list[Chat]:
        """Pinned chats first, then most recent activity, then newest id."""
        return sorted(
            self._chats,
            key=lambda c: (c.is_pinned, c.last_activity, _id_order(c.id)),
            reverse=True,
        )

    # -- chat mutations --------------------------------------------------

    async def create_chat(self) -> Chat:
        chat = Chat(id=self._next_id(), title=self._config.placeholder_title)
        self._chats.insert(0, chat)
        self._prefs.active_chat_id = chat.id
        logger.info("chat_created", chat_id=chat.id)
        await self._persist()
        return chat

    async def append_message(self, chat_id: str, message: Message) -> None:
        chat = self.get_chat(chat_id)
        if chat is None:
            logger.warning("append_to_unknown_chat", chat_id=chat_id)
            return

        is_first = not chat.messages
        chat.messages.append(message)
        chat.last_activity = utcnow()

        prompt = message.text.strip()
        if (
            is_first
            and message.sender == Sender.USER
            and chat.title == self._config.placeholder_title
        ):
            if prompt:
                chat.title = prompt[: self._config.title_max_length]
            elif message.attachments:
                chat.title = self._config.attachment_title

        await self._persist()

    async def set_active_chat(self, chat_id: str) -> None:
        if self.get_chat(chat_id) is None:
            return
        self._prefs.active_chat_id = chat_id
        await self._persist()

    async def rename_chat(self, chat_id: str, new_title: str) -> None:
        chat = self.get_chat(chat_id)
        title = new_title.strip()
        if chat is None or not title:
            return
        chat.title = title
        await self._persist()

    async def toggle_pin(self, chat_id: str) -> None:
        chat = self.get_chat(chat_id)
        if chat is None:
            return
        chat.is_pinned = not chat.is_pinned
        await self._persist()

    async def delete_chat(self, chat_id: str) -> None:
        chat = self.get_chat(chat_id)
        if chat is None:
            return
        self._chats.remove(chat)
        if self._prefs.active_chat_id == chat_id:
            self._prefs.active_chat_id = None
        logger.info("chat_deleted", chat_id=chat_id)
        await self._persist()

    async def clear_all(self) -> None:
        """Drop every chat and reset preferences to the configured defaults.

        The id counter is kept, so new chats never reuse an earlier id.
        """
        removed = len(self._chats)
        self._chats = []
        self._prefs = self._default_preferences()
        logger.info("store_cleared", chats=removed)
        await self._persist()

    # -- preference mutations -------------------------------------------

    async def set_theme_mode(self, theme: ThemeMode) -> None:
        self._prefs.theme_mode = ThemeMode(theme)
        await self._persist()

    async def set_selected_model(self, model_id: str) -> None:
        self._prefs.selected_model = model_id
        await self._persist()

    async def set_selected_mode(self, mode_id: str) -> None:
        self._prefs.selected_mode = mode_id
        await self._persist()

    # -- persistence -----------------------------------------------------

    async def load(self) -> None:
        """Rehydrate from durable storage. Bad entries degrade to defaults."""
        self._chats = _decode_chats(await self._repo.get(CHATS_KEY))

        active = await self._repo.get(ACTIVE_CHAT_KEY)
        self._prefs.active_chat_id = active if isinstance(active, str) else None

        theme = await self._repo.get(THEME_KEY)
        if isinstance(theme, str) and theme in {t.value for t in ThemeMode}:
            self._prefs.theme_mode = ThemeMode(theme)

        model = await self._repo.get(MODEL_KEY)
        if isinstance(model, str) and model:
            self._prefs.selected_model = model

        mode = await self._repo.get(MODE_KEY)
        if isinstance(mode, str) and mode:
            self._prefs.selected_mode = mode

        self._last_id = max((_id_order(c.id) for c in self._chats), default=0)
        logger.info(
            "store_loaded",
            chats=len(self._chats),
            active_chat_id=self._prefs.active_chat_id,
        )

    async def _persist(self) -> None:
        await self._repo.set_many(
            {
                CHATS_KEY: [c.to_dict() for c in self._chats],
                ACTIVE_CHAT_KEY: self._prefs.active_chat_id,
                THEME_KEY: self._prefs.theme_mode.value,
                MODEL_KEY: self._prefs.selected_model,
                MODE_KEY: self._prefs.selected_mode,
            }
        )

    def _default_preferences(self) -> Preferences:
        return Preferences(
            selected_model=self._config.default_model,
            selected_mode=self._config.default_mode,
            theme_mode=ThemeMode(self._config.default_theme),
        )

    def _next_id(self) -> str:
        # Millisecond clock, bumped so ids stay unique and increasing.
        candidate = max(time.time_ns() // 1_000_000, self._last_id + 1)
        self._last_id = candidate
        return str(candidate)


def _id_order(chat_id: str) -> int:
    try:
        return int(chat_id)
    except ValueError:
        return 0


def _decode_chats(raw: Any) -> list[Chat]:
    if raw is MISSING:
        return []
    if not isinstance(raw, list):
        logger.warning("chats_entry_invalid", type=type(raw).__name__)
        return []
    try:
        return [Chat.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning("chats_entry_corrupt", error=str(e))
        return []
