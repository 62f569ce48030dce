"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Sender(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class ThemeMode(StrEnum):
    LIGHT = "light"
    DARK = "dark"
