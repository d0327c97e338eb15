from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import structlog

from codegen_relay.config import Settings
from codegen_relay.errors import InferenceAPIError, InferenceResponseError
from codegen_relay.logging_utils import truncate_text
from codegen_relay.metrics import UPSTREAM_LATENCY, UPSTREAM_REQUESTS


def extract_generated_text(payload: Any) -> str:
    """Return the first candidate's ``generated_text`` or raise InferenceResponseError.

    The hosted text-generation API answers with a list of candidates, e.g.
    ``[{"generated_text": "..."}]``. Everything past the first candidate is ignored.
    """
    if not isinstance(payload, list):
        raise InferenceResponseError(f"expected a JSON array, got {type(payload).__name__}")
    if not payload:
        raise InferenceResponseError("empty candidate list")

    first = payload[0]
    if not isinstance(first, dict):
        raise InferenceResponseError(f"expected an object candidate, got {type(first).__name__}")

    text = first.get("generated_text")
    if not isinstance(text, str):
        raise InferenceResponseError("candidate has no generated_text string")
    return text


class InferenceClient:
    """Sends one prompt per call to the hosted model endpoint."""

    def __init__(
        self,
        settings: Settings,
        logger: structlog.stdlib.BoundLogger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or structlog.get_logger()
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout_s),
            headers={
                "Authorization": f"Bearer {settings.api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def generate_text(self, prompt: str) -> str:
        url = self.settings.model_url
        start = time.perf_counter()
        outcome = "error"
        try:
            try:
                # httpx applies its timeout per phase; wait_for bounds the whole exchange
                response = await asyncio.wait_for(
                    self._client.post(url, json={"inputs": prompt}),
                    timeout=self.settings.request_timeout_s,
                )
            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                outcome = "timeout"
                raise InferenceAPIError(f"upstream timed out: {e!r}") from e
            except httpx.HTTPError as e:
                raise InferenceAPIError(f"upstream transport error: {e!r}") from e

            if response.is_error:
                outcome = f"http_{response.status_code}"
                raise InferenceAPIError(
                    f"upstream returned HTTP {response.status_code}: "
                    f"{truncate_text(response.text, self.settings.max_log_text_chars)}",
                    status_code=response.status_code,
                )

            try:
                payload = response.json()
            except ValueError as e:
                outcome = "bad_response"
                raise InferenceResponseError("upstream body is not JSON") from e

            try:
                text = extract_generated_text(payload)
            except InferenceResponseError:
                outcome = "bad_response"
                raise

            outcome = "ok"
            return text
        finally:
            duration = time.perf_counter() - start
            UPSTREAM_REQUESTS.labels(outcome=outcome).inc()
            UPSTREAM_LATENCY.observe(duration)
            self.logger.info(
                "upstream_call",
                model=self.settings.model_name,
                outcome=outcome,
                prompt_chars=len(prompt),
                duration_ms=int(duration * 1000),
            )
