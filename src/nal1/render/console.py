"""Plain-text rendering of stored messages for the terminal shell."""

from __future__ import annotations

import re

from nal1.core.types import Sender
from nal1.render.segmenter import CodeSegment, ImageResult, TextSegment, segment
from nal1.storage.models import Chat, Message

_BOLD = re.compile(r"\*\*(.*?)\*\*")


def render_message(message: Message, width: int = 60) -> str:
    label = "You" if message.sender == Sender.USER else "Nal1"
    lines = [f"{label}:"]

    for att in message.attachments:
        kind = "image" if att.is_image else (att.mime_type.split("/")[-1] or "file")
        lines.append(f"  [{kind}] {att.name} ({att.byte_size} bytes)")

    for part in segment(message.text):
        if isinstance(part, ImageResult):
            lines.append(f"  [image] {part.url}")
            lines.append(f"  Prompt: {part.prompt}")
        elif isinstance(part, CodeSegment):
            header = f"-- {part.language or 'code'} "
            lines.append(header + "-" * max(0, width - len(header)))
            lines.append(part.content.rstrip("\n"))
            lines.append("-" * width)
        elif isinstance(part, TextSegment):
            text = _BOLD.sub(lambda m: m.group(1).upper(), part.content).strip("\n")
            if text:
                lines.append(text)

    return "\n".join(lines)


def render_chat_list(chats: list[Chat], active_chat_id: str | None) -> str:
    if not chats:
        return "(no chats)"
    rows = []
    for chat in chats:
        marker = "*" if chat.id == active_chat_id else " "
        pin = "[pinned] " if chat.is_pinned else ""
        rows.append(f"{marker} {chat.id}  {pin}{chat.title}  ({len(chat.messages)} messages)")
    return "\n".join(rows)
