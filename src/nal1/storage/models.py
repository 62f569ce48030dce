"""Data models for the chat store and their JSON-compatible forms."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from nal1.core.types import Sender, ThemeMode


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    stamp = datetime.fromisoformat(value)
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


@dataclass(frozen=True, slots=True)
class Attachment:
    """A file attached to a user message, carried inline as a data URI."""

    name: str
    mime_type: str
    byte_size: int
    inline_payload: str

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.mime_type,
            "size": self.byte_size,
            "dataUrl": self.inline_payload,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attachment:
        return cls(
            name=str(data["name"]),
            mime_type=str(data["type"]),
            byte_size=int(data["size"]),
            inline_payload=str(data["dataUrl"]),
        )


@dataclass(frozen=True, slots=True)
class Message:
    sender: Sender
    text: str
    attachments: list[Attachment] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender.value,
            "text": self.text,
            "attachments": [a.to_dict() for a in self.attachments],
            "timestamp": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            id=str(data["id"]),
            sender=Sender(data["sender"]),
            text=str(data["text"]),
            attachments=[Attachment.from_dict(a) for a in data.get("attachments") or []],
            created_at=parse_timestamp(data["timestamp"]),
        )


@dataclass
class Chat:
    id: str
    title: str
    messages: list[Message] = field(default_factory=list)
    is_pinned: bool = False
    last_activity: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "isPinned": self.is_pinned,
            "timestamp": self.last_activity.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Chat:
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            is_pinned=bool(data.get("isPinned", False)),
            last_activity=parse_timestamp(data["timestamp"]),
        )


@dataclass
class Preferences:
    selected_model: str
    selected_mode: str
    theme_mode: ThemeMode = ThemeMode.LIGHT
    active_chat_id: Optional[str] = None
