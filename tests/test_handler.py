"""Tests for the send flow and the request guard."""

import asyncio

import pytest

from nal1.ai.client import AIClient, AIResponse
from nal1.ai.handler import MessageHandler
from nal1.ai.router import InferenceRouter
from nal1.config import AppConfig
from nal1.core.chat_store import ChatStore
from nal1.core.session import RequestGuard, RequestInFlightError
from nal1.core.types import Sender
from nal1.render.segmenter import is_image_result

from conftest import ScriptedClient


class GatedClient(AIClient):
    """Holds every request until the test releases it."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.started = asyncio.Event()

    async def complete(self, instruction: str, engine: str) -> AIResponse:
        self.started.set()
        await self.release.wait()
        return AIResponse(text="done", engine=engine)


def _handler(store: ChatStore, client: AIClient, config: AppConfig, scope: str = "global") -> MessageHandler:
    return MessageHandler(store, InferenceRouter(client, config), RequestGuard(scope))


@pytest.mark.asyncio
async def test_send_creates_chat_and_stores_both_messages(store: ChatStore, config: AppConfig) -> None:
    handler = _handler(store, ScriptedClient(["**Sure**, here it is"]), config)

    reply = await handler.send("  Plan a trip to Japan  ")

    chat = store.active_chat()
    assert chat is not None
    assert chat.title == "Plan a trip to Japan"
    assert [m.sender for m in chat.messages] == [Sender.USER, Sender.ASSISTANT]
    assert chat.messages[0].text == "Plan a trip to Japan"
    assert reply == chat.messages[1]
    assert reply.text == "**Sure**, here it is"


@pytest.mark.asyncio
async def test_empty_send_does_nothing(store: ChatStore, config: AppConfig) -> None:
    client = ScriptedClient(["unused"])
    handler = _handler(store, client, config)

    assert await handler.send("   ") is None
    assert store.chats == []
    assert client.calls == []


@pytest.mark.asyncio
async def test_failure_reply_is_stored_like_any_reply(store: ChatStore, config: AppConfig) -> None:
    handler = _handler(store, ScriptedClient(), config)

    reply = await handler.send("hello")

    assert reply.text == config.inference.failure_message
    assert store.active_chat().messages[-1].text == config.inference.failure_message


@pytest.mark.asyncio
async def test_uses_selected_model_and_mode(store: ChatStore, config: AppConfig) -> None:
    client = ScriptedClient()
    await store.set_selected_model("mistral")
    await store.set_selected_mode("image")
    handler = _handler(store, client, config)

    reply = await handler.send("a lighthouse")

    assert client.calls == []
    assert is_image_result(reply.text)


@pytest.mark.asyncio
async def test_second_send_rejected_while_first_in_flight(store: ChatStore, config: AppConfig) -> None:
    client = GatedClient()
    handler = _handler(store, client, config)

    first = asyncio.create_task(handler.send("first"))
    await client.started.wait()

    await store.create_chat()
    assert handler.guard.is_busy()
    assert await handler.send("other chat") is None

    client.release.set()
    reply = await first

    assert reply.text == "done"
    assert not handler.guard.is_busy()


@pytest.mark.asyncio
async def test_per_chat_scope_allows_other_chats(store: ChatStore, config: AppConfig) -> None:
    client = GatedClient()
    handler = _handler(store, client, config, scope="per_chat")
    busy_chat = await store.create_chat()

    first = asyncio.create_task(handler.send("first"))
    await client.started.wait()

    await store.create_chat()
    assert handler.guard.is_busy(busy_chat.id)
    second = asyncio.create_task(handler.send("second"))
    await asyncio.sleep(0)

    client.release.set()
    assert (await first).text == "done"
    assert (await second).text == "done"


@pytest.mark.asyncio
async def test_per_chat_scope_blocks_second_send_into_new_chat(store: ChatStore, config: AppConfig) -> None:
    client = GatedClient()
    handler = _handler(store, client, config, scope="per_chat")

    first = asyncio.create_task(handler.send("first"))
    await client.started.wait()

    chat = store.active_chat()
    assert handler.guard.is_busy(chat.id)
    assert await handler.send("second") is None
    assert [(m.sender, m.text) for m in chat.messages] == [(Sender.USER, "first")]

    client.release.set()
    assert (await first).text == "done"
    assert [m.text for m in chat.messages] == ["first", "done"]


@pytest.mark.asyncio
async def test_guard_hold_is_exclusive() -> None:
    guard = RequestGuard()
    async with guard.hold("a"):
        with pytest.raises(RequestInFlightError):
            async with guard.hold("b"):
                pass
    assert not guard.is_busy()
