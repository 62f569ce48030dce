"""Split assistant replies into text, fenced code and image-result segments.

Image results are stored in message text with a sentinel prefix::

    NAL1_IMG:<url>|<prompt>

``encode_image_result`` and ``decode_image_result`` are the only places that
know this format. Any text starting with the sentinel is an image result,
even if the ``|`` separator is missing (the prompt is then empty).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, Union

IMAGE_SENTINEL = "NAL1_IMG:"

_CODE_BLOCK = re.compile(r"```(\w*)\s*([\s\S]*?)```")


@dataclass(frozen=True, slots=True)
class TextSegment:
    kind: ClassVar[str] = "text"
    content: str

    @property
    def source(self) -> str:
        return self.content


@dataclass(frozen=True, slots=True)
class CodeSegment:
    kind: ClassVar[str] = "code"
    language: str
    content: str
    source: str  # the fenced block exactly as it appeared


@dataclass(frozen=True, slots=True)
class ImageResult:
    kind: ClassVar[str] = "image"
    url: str
    prompt: str


Segment = Union[TextSegment, CodeSegment, ImageResult]


def encode_image_result(url: str, prompt: str) -> str:
    return f"{IMAGE_SENTINEL}{url}|{prompt}"


def is_image_result(text: str) -> bool:
    return text.startswith(IMAGE_SENTINEL)


def decode_image_result(text: str) -> ImageResult:
    url, _, prompt = text[len(IMAGE_SENTINEL):].partition("|")
    return ImageResult(url=url, prompt=prompt)


def segment(raw_text: str) -> list[Segment]:
    if is_image_result(raw_text):
        return [decode_image_result(raw_text)]

    segments: list[Segment] = []
    last = 0
    for match in _CODE_BLOCK.finditer(raw_text):
        if match.start() > last:
            segments.append(TextSegment(raw_text[last:match.start()]))
        segments.append(
            CodeSegment(language=match.group(1), content=match.group(2), source=match.group(0))
        )
        last = match.end()

    if last < len(raw_text):
        segments.append(TextSegment(raw_text[last:]))
    return segments
