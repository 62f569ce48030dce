"""Turn raw files into inline, serializable attachments."""

from __future__ import annotations

import base64
import mimetypes
from pathlib import Path

from nal1.storage.models import Attachment

DEFAULT_MEDIA_TYPE = "application/octet-stream"


def guess_media_type(filename: str) -> str:
    media_type, _ = mimetypes.guess_type(filename)
    return media_type or DEFAULT_MEDIA_TYPE


def encode_bytes(data: bytes, filename: str, media_type: str | None = None) -> Attachment:
    """Build an attachment whose payload is a base64 data URI."""
    media_type = media_type or guess_media_type(filename)
    payload = base64.b64encode(data).decode("ascii")
    return Attachment(
        name=filename,
        mime_type=media_type,
        byte_size=len(data),
        inline_payload=f"data:{media_type};base64,{payload}",
    )


def encode_file(path: str | Path) -> Attachment:
    file_path = Path(path)
    return encode_bytes(file_path.read_bytes(), file_path.name)

