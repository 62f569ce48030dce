"""Text-engine client abstraction with an httpx backend for the public endpoint."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from nal1.log import get_logger

logger = get_logger(__name__)

MIN_REPLY_LENGTH = 2


@dataclass
class AIResponse:
    """A successful reply from one backend engine."""

    text: str
    engine: str
    status_code: int = 200


class EngineError(Exception):
    """A single attempt against a backend engine failed."""

    def __init__(self, engine: str, reason: str):
        super().__init__(f"{engine}: {reason}")
        self.engine = engine
        self.reason = reason


class AIClient(ABC):
    """Sends one fully-built instruction to one backend engine."""

    @abstractmethod
    async def complete(self, instruction: str, engine: str) -> AIResponse:
        """Return the reply, or raise EngineError for any failed attempt."""
        ...

    async def aclose(self) -> None:
        return None


class PollinationsClient(AIClient):
    """GET-style text endpoint: the instruction is the escaped request path."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 25.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def build_url(self, instruction: str) -> str:
        return self._base_url + quote(instruction, safe="")

    async def complete(self, instruction: str, engine: str) -> AIResponse:
        url = self.build_url(instruction)
        logger.debug("text_request", engine=engine, url_length=len(url))

        try:
            response = await asyncio.wait_for(
                self._http.get(
                    url,
                    params={"model": engine},
                    headers={"Accept": "text/plain", "Cache-Control": "no-cache"},
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            raise EngineError(engine, f"timed out after {self._timeout} seconds") from None
        except httpx.HTTPError as e:
            raise EngineError(engine, f"transport error: {e}") from e

        if not response.is_success:
            raise EngineError(engine, f"status {response.status_code}")

        text = response.text
        if len(text.strip()) < MIN_REPLY_LENGTH:
            raise EngineError(engine, "empty reply")

        logger.debug("text_response", engine=engine, status=response.status_code, length=len(text))
        return AIResponse(text=text, engine=engine, status_code=response.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
