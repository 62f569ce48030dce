"""Inference request router: logical model -> engine, with engine fallback.

``InferenceRouter.process`` never raises. It returns ``None`` for empty input,
an encoded image result in image mode, the engine's reply on success, or the
configured failure message once every attempt has failed.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Sequence
from urllib.parse import quote

from nal1.ai.client import AIClient, EngineError
from nal1.ai.conversation import build_instruction
from nal1.config import AppConfig
from nal1.log import get_logger
from nal1.render.segmenter import encode_image_result
from nal1.storage.models import Attachment

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt 0 uses the mapped engine; retry k uses fallback[(k - 1) % n]."""

    max_attempts: int
    fallback_engines: tuple[str, ...]

    def engine_for(self, attempt: int, primary: str) -> str:
        if attempt == 0:
            return primary
        return self.fallback_engines[(attempt - 1) % len(self.fallback_engines)]

    def engines(self, primary: str) -> list[str]:
        return [self.engine_for(i, primary) for i in range(self.max_attempts)]


class InferenceRouter:
    def __init__(
        self,
        client: AIClient,
        config: AppConfig,
        rng: random.Random | None = None,
    ):
        self._client = client
        self._config = config
        self._rng = rng or random.Random()
        self.policy = RetryPolicy(
            max_attempts=config.inference.max_attempts,
            fallback_engines=tuple(config.inference.fallback_engines),
        )

    def resolve_engine(self, model_id: str) -> str:
        engines = self._config.inference.engines
        if model_id in engines:
            return engines[model_id]
        default = self._config.chat.default_model
        logger.warning("unknown_model", model_id=model_id, using=default)
        return engines.get(default, self.policy.fallback_engines[0])

    async def process(
        self,
        prompt: str,
        model_id: str,
        mode_id: str,
        attachments: Sequence[Attachment] = (),
    ) -> str | None:
        if not prompt.strip() and not attachments:
            return None

        mode = self._config.get_mode(mode_id)
        if mode is not None and mode.kind == "image":
            return await self._generate_image(prompt)

        instruction = build_instruction(prompt, mode, attachments, self._config.inference)
        primary = self.resolve_engine(model_id)

        for attempt in range(self.policy.max_attempts):
            engine = self.policy.engine_for(attempt, primary)
            try:
                response = await self._client.complete(instruction, engine)
            except EngineError as e:
                logger.warning("engine_attempt_failed", attempt=attempt, engine=engine, reason=e.reason)
                continue
            except Exception as e:
                logger.warning("engine_attempt_error", attempt=attempt, engine=engine, error=repr(e))
                continue

            logger.info("engine_reply", attempt=attempt, engine=engine, model_id=model_id)
            return response.text

        logger.error("engines_exhausted", model_id=model_id, engines=self.policy.engines(primary))
        return self._config.inference.failure_message

    def image_url(self, prompt: str, seed: int) -> str:
        image = self._config.image
        return (
            f"{image.base_url.rstrip('/')}/prompt/{quote(prompt, safe='')}"
            f"?seed={seed}&width={image.width}&height={image.height}"
            f"&nologo=true&model={image.model}"
        )

    async def _generate_image(self, prompt: str) -> str:
        seed = self._rng.randrange(self._config.image.max_seed)
        url = self.image_url(prompt, seed)
        if self._config.image.delay_seconds > 0:
            await asyncio.sleep(self._config.image.delay_seconds)
        logger.info("image_result", seed=seed)
        return encode_image_result(url, prompt)
