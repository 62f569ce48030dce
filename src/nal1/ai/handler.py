"""Message handler: stores the prompt, asks the router, stores the reply."""

from __future__ import annotations

from typing import Sequence

from nal1.ai.router import InferenceRouter
from nal1.core.chat_store import ChatStore
from nal1.core.session import RequestGuard, RequestInFlightError
from nal1.core.types import Sender
from nal1.log import get_logger
from nal1.storage.models import Attachment, Message

logger = get_logger(__name__)


class MessageHandler:
    """Handles the full flow: prompt -> chat -> router -> reply."""

    def __init__(self, store: ChatStore, router: InferenceRouter, guard: RequestGuard):
        self._store = store
        self._router = router
        self._guard = guard

    @property
    def guard(self) -> RequestGuard:
        return self._guard

    async def send(self, prompt: str, attachments: Sequence[Attachment] = ()) -> Message | None:
        """Send a prompt in the active chat, creating one if needed.

        Returns the stored assistant message, or None when nothing was sent
        (empty input, or another request still in flight).
        """
        text = prompt.strip()
        if not text and not attachments:
            return None

        chat = self._store.active_chat()
        chat_id = chat.id if chat is not None else None
        if self._guard.is_busy(chat_id):
            logger.info("send_rejected_busy", chat_id=chat_id)
            return None

        if chat is None:
            chat = await self._store.create_chat()

        try:
            async with self._guard.hold(chat.id):
                await self._store.append_message(
                    chat.id,
                    Message(sender=Sender.USER, text=text, attachments=list(attachments)),
                )

                prefs = self._store.preferences
                reply = await self._router.process(
                    text, prefs.selected_model, prefs.selected_mode, attachments
                )
                if not reply:
                    return None

                message = Message(sender=Sender.ASSISTANT, text=reply)
                await self._store.append_message(chat.id, message)
                return message
        except RequestInFlightError:
            logger.info("send_rejected_busy", chat_id=chat.id)
            return None
