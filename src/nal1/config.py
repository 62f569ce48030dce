"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator


class ModelOption(BaseModel):
    """A user-facing logical model shown in the model picker."""

    id: str
    name: str
    description: str = ""


class ModeOption(BaseModel):
    """A behavioural mode; ``kind: image`` switches to image generation."""

    id: str
    name: str
    prompt: str = ""
    kind: Literal["text", "image"] = "text"


def _default_models() -> list[ModelOption]:
    return [
        ModelOption(
            id="openai",
            name="Nal1 Ultra",
            description="Powerful for complex reasoning and creative tasks.",
        ),
        ModelOption(
            id="qwen",
            name="Nal1 Architect",
            description="Optimized for high-speed coding and technical logic.",
        ),
        ModelOption(
            id="mistral",
            name="Nal1 Lite",
            description="Fast, efficient, and great for daily brief tasks.",
        ),
    ]


def _default_modes() -> list[ModeOption]:
    return [
        ModeOption(id="standard", name="Standard", prompt="Be helpful, clear, and concise."),
        ModeOption(
            id="analyst",
            name="Analyst",
            prompt="Mode: Analyst. Be logical, structured, and data-driven.",
        ),
        ModeOption(
            id="savage",
            name="Savage",
            prompt="Mode: Savage. Be direct, brutally honest, and sharp.",
        ),
        ModeOption(
            id="teacher",
            name="Teacher",
            prompt="Mode: Teacher. Explain clearly with analogies.",
        ),
        ModeOption(id="image", name="Nal1 Vision", kind="image"),
    ]


class InferenceConfig(BaseModel):
    text_base_url: str = "https://text.pollinations.ai/"
    timeout: float = 25.0
    max_attempts: int = Field(default=3, ge=1)
    # Logical model id -> backend engine id. Several ids may share one engine.
    engines: dict[str, str] = Field(
        default_factory=lambda: {
            "openai": "openai",
            "qwen": "qwen-coder",
            "mistral": "mistral",
        }
    )
    # Visited in order on retry, independent of the engine table.
    fallback_engines: list[str] = Field(
        default_factory=lambda: ["openai", "mistral", "qwen-coder"],
        min_length=1,
    )
    persona: str = (
        "You are Nal1 (Neural Adaptive Logic 1), a helpful AI assistant."
    )
    language_directive: str = "Respond in Thai."
    failure_message: str = (
        "⚠️ ขออภัยครับ ระบบประมวลผลขัดข้องชั่วคราว กรุณาลองใหม่ภายหลัง"
    )


class ImageConfig(BaseModel):
    base_url: str = "https://image.pollinations.ai"
    width: int = 1024
    height: int = 1024
    model: str = "flux"
    max_seed: int = 999999
    delay_seconds: float = 2.0


class ChatConfig(BaseModel):
    placeholder_title: str = "New Chat"
    # Title for chats whose first message carries only attachments
    attachment_title: str = "File Analysis"
    title_max_length: int = Field(default=40, ge=1)
    default_model: str = "openai"
    default_mode: str = "standard"
    default_theme: Literal["light", "dark"] = "light"
    # "global" serializes every send; "per_chat" only sends within one chat.
    guard_scope: Literal["global", "per_chat"] = "global"


class StorageConfig(BaseModel):
    db_path: str = "./data/nal1.db"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_json: bool = False
    data_dir: str = "./data"
    models: list[ModelOption] = Field(default_factory=_default_models)
    modes: list[ModeOption] = Field(default_factory=_default_modes)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    image: ImageConfig = Field(default_factory=ImageConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @model_validator(mode="after")
    def _check_defaults(self) -> AppConfig:
        if self.chat.default_model not in {m.id for m in self.models}:
            raise ValueError(f"chat.default_model '{self.chat.default_model}' is not a configured model")
        if self.chat.default_mode not in {m.id for m in self.modes}:
            raise ValueError(f"chat.default_mode '{self.chat.default_mode}' is not a configured mode")
        return self

    def get_mode(self, mode_id: str) -> ModeOption | None:
        return next((m for m in self.modes if m.id == mode_id), None)

    def get_model(self, model_id: str) -> ModelOption | None:
        return next((m for m in self.models if m.id == model_id), None)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced by other values as ${data_dir}
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(str(raw_data.get("data_dir", "./data")))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
