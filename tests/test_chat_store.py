"""Tests for the chat store: titles, ordering, CRUD and persistence."""

from datetime import datetime, timedelta, timezone

import pytest

from nal1.app import Nal1App
from nal1.config import AppConfig
from nal1.core.chat_store import ChatStore
from nal1.core.types import Sender, ThemeMode
from nal1.storage.database import Database
from nal1.storage.models import Attachment, Message
from nal1.storage.state_repo import CHATS_KEY, THEME_KEY, StateRepository


def _user(text: str, **kwargs) -> Message:
    return Message(sender=Sender.USER, text=text, **kwargs)


async def _reload(db: Database, config: AppConfig) -> ChatStore:
    fresh = ChatStore(StateRepository(db), config.chat)
    await fresh.load()
    return fresh


@pytest.mark.asyncio
async def test_create_chat_prepends_and_activates(store: ChatStore) -> None:
    first = await store.create_chat()
    second = await store.create_chat()

    assert [c.id for c in store.chats] == [second.id, first.id]
    assert store.preferences.active_chat_id == second.id
    assert second.title == "New Chat"
    assert not second.is_pinned
    assert int(second.id) > int(first.id)


@pytest.mark.asyncio
async def test_title_from_first_user_message(store: ChatStore) -> None:
    chat = await store.create_chat()

    await store.append_message(chat.id, _user("Plan a trip to Japan for one week"))
    await store.append_message(chat.id, _user("Actually make it two weeks please"))

    assert chat.title == "Plan a trip to Japan for one week"
    assert len(chat.messages) == 2


@pytest.mark.asyncio
async def test_title_is_truncated(store: ChatStore) -> None:
    chat = await store.create_chat()
    await store.append_message(chat.id, _user("  " + "x" * 100))
    assert chat.title == "x" * 40


@pytest.mark.asyncio
async def test_title_not_taken_from_assistant_or_empty_text(store: ChatStore) -> None:
    chat = await store.create_chat()
    await store.append_message(chat.id, Message(sender=Sender.ASSISTANT, text="Hi, I am Nal1"))
    assert chat.title == "New Chat"

    other = await store.create_chat()
    await store.append_message(other.id, _user("   "))
    await store.append_message(other.id, _user("later prompt"))
    assert other.title == "New Chat"


@pytest.mark.asyncio
async def test_renamed_chat_keeps_its_title(store: ChatStore) -> None:
    chat = await store.create_chat()
    await store.rename_chat(chat.id, "  Travel  ")
    await store.append_message(chat.id, _user("Plan a trip"))
    assert chat.title == "Travel"


@pytest.mark.asyncio
async def test_rename_ignores_blank_titles(store: ChatStore) -> None:
    chat = await store.create_chat()
    await store.rename_chat(chat.id, "   ")
    assert chat.title == "New Chat"


@pytest.mark.asyncio
async def test_unknown_ids_are_noops(store: ChatStore) -> None:
    chat = await store.create_chat()

    await store.append_message("missing", _user("hello"))
    await store.set_active_chat("missing")
    await store.rename_chat("missing", "x")
    await store.toggle_pin("missing")
    await store.delete_chat("missing")

    assert store.chats == [chat]
    assert store.preferences.active_chat_id == chat.id


@pytest.mark.asyncio
async def test_delete_active_chat_clears_pointer(store: ChatStore) -> None:
    keep = await store.create_chat()
    gone = await store.create_chat()

    await store.delete_chat(gone.id)

    assert store.chats == [keep]
    assert store.preferences.active_chat_id is None
    assert store.active_chat() is None


@pytest.mark.asyncio
async def test_sorted_view_pinned_then_recent(store: ChatStore) -> None:
    now = datetime.now(timezone.utc)
    a = await store.create_chat()
    b = await store.create_chat()
    c = await store.create_chat()
    await store.toggle_pin(a.id)
    await store.toggle_pin(c.id)
    a.last_activity = now - timedelta(hours=2)
    b.last_activity = now
    c.last_activity = now - timedelta(minutes=1)

    assert [x.id for x in store.sorted_view()] == [c.id, a.id, b.id]


@pytest.mark.asyncio
async def test_sorted_view_breaks_ties_by_newer_id(store: ChatStore) -> None:
    stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
    chats = [await store.create_chat() for _ in range(3)]
    for chat in chats:
        chat.last_activity = stamp

    assert [c.id for c in store.sorted_view()] == [c.id for c in reversed(chats)]
    assert store.sorted_view() == store.sorted_view()


@pytest.mark.asyncio
async def test_persistence_round_trip(store: ChatStore, db: Database, config: AppConfig) -> None:
    attachment = Attachment(
        name="photo.png",
        mime_type="image/png",
        byte_size=3,
        inline_payload="data:image/png;base64,AAEC",
    )
    first = await store.create_chat()
    await store.append_message(first.id, _user("first prompt", attachments=[attachment]))
    await store.append_message(first.id, Message(sender=Sender.ASSISTANT, text="```py\nx\n```"))
    second = await store.create_chat()
    await store.append_message(second.id, _user("second"))
    await store.toggle_pin(first.id)
    await store.set_active_chat(first.id)
    await store.set_theme_mode(ThemeMode.DARK)
    await store.set_selected_model("qwen")
    await store.set_selected_mode("image")

    restored = await _reload(db, config)

    assert restored.chats == store.chats
    assert restored.preferences == store.preferences
    assert restored.active_chat().messages[0].attachments == [attachment]

    newer = await restored.create_chat()
    assert int(newer.id) > int(second.id)


@pytest.mark.asyncio
async def test_corrupt_entries_fall_back_to_defaults(db: Database, config: AppConfig) -> None:
    await db.conn.execute(
        "INSERT INTO kv_store (key, value_json) VALUES (?, ?)", (CHATS_KEY, "{not json")
    )
    await db.conn.execute(
        "INSERT INTO kv_store (key, value_json) VALUES (?, ?)", (THEME_KEY, '"purple"')
    )
    await db.conn.commit()

    restored = await _reload(db, config)

    assert restored.chats == []
    assert restored.preferences.theme_mode == ThemeMode.LIGHT
    assert restored.preferences.selected_model == "openai"


@pytest.mark.asyncio
async def test_structurally_invalid_chats_fall_back(db: Database, config: AppConfig) -> None:
    repo = StateRepository(db)
    await repo.set(CHATS_KEY, [{"id": "1", "messages": "oops"}])

    restored = await _reload(db, config)

    assert restored.chats == []


@pytest.mark.asyncio
async def test_attachment_only_first_message_uses_attachment_title(store: ChatStore) -> None:
    pdf = Attachment("report.pdf", "application/pdf", 4, "data:application/pdf;base64,AAAA")
    chat = await store.create_chat()

    await store.append_message(chat.id, _user("", attachments=[pdf]))
    await store.append_message(chat.id, _user("summarize it"))

    assert chat.title == "File Analysis"


@pytest.mark.asyncio
async def test_clear_all_resets_chats_and_preferences(
    store: ChatStore, db: Database, config: AppConfig
) -> None:
    first = await store.create_chat()
    second = await store.create_chat()
    await store.toggle_pin(first.id)
    await store.set_theme_mode(ThemeMode.DARK)
    await store.set_selected_model("qwen")
    await store.set_selected_mode("analyst")

    await store.clear_all()

    restored = await _reload(db, config)
    assert restored.chats == []
    assert restored.preferences.active_chat_id is None
    assert restored.preferences.theme_mode == ThemeMode.LIGHT
    assert restored.preferences.selected_model == "openai"
    assert restored.preferences.selected_mode == "standard"

    fresh = await store.create_chat()
    assert int(fresh.id) > int(second.id)


@pytest.mark.asyncio
async def test_unreadable_database_file_is_moved_aside(tmp_path, config: AppConfig) -> None:
    db_file = tmp_path / "nal1.db"
    db_file.write_bytes(b"this is not a sqlite database" * 200)

    async with Nal1App(config) as app:
        assert app.store.chats == []
        chat = await app.store.create_chat()
        assert app.store.get_chat(chat.id) is not None

    assert len(list(tmp_path.glob("nal1.db.corrupt-*"))) == 1
    assert db_file.exists()
