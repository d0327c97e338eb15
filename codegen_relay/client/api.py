from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

import httpx
import structlog

logger = structlog.get_logger()

DEFAULT_RELAY_URL = "http://localhost:5000"
DEFAULT_TIMEOUT_S = 120.0


@dataclass(frozen=True)
class Ok:
    text: str


@dataclass(frozen=True)
class Unrecognized:
    pass


ParsedResult = Union[Ok, Unrecognized]


def parse_result(payload: Any, key: str) -> ParsedResult:
    """Unwrap the relay's answer stored under ``key``.

    Accepts a plain string, or a raw upstream candidate list whose first
    element carries ``generated_text``. Empty text counts as no result.
    """
    if not isinstance(payload, dict):
        return Unrecognized()

    value = payload.get(key)
    if isinstance(value, str):
        return Ok(value) if value else Unrecognized()

    if isinstance(value, list) and value and isinstance(value[0], dict):
        text = value[0].get("generated_text")
        if isinstance(text, str) and text:
            return Ok(text)

    return Unrecognized()


class RelayClient:
    """Async HTTP client for the relay's two endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_RELAY_URL,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> RelayClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        response = await self._client.post(path, json=body)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            # A non-JSON 2xx body parses as "no result"
            logger.warning("relay_body_not_json", path=path)
            return None

    async def generate(self, pseudocode: str, language: str) -> Any:
        return await self._post("/generate", {"pseudocode": pseudocode, "language": language})

    async def solve(self, problem_statement: str) -> Any:
        return await self._post("/solve", {"problemStatement": problem_statement})
