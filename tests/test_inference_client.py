import asyncio
import json
import time

import httpx
import pytest
import structlog
from prometheus_client import REGISTRY

from codegen_relay.config import Settings
from codegen_relay.errors import InferenceAPIError, InferenceResponseError
from codegen_relay.inference.client import InferenceClient, extract_generated_text


@pytest.fixture
def settings():
    return Settings(
        api_key="test-key",
        model_name="test/model",
        inference_base_url="https://upstream.test/models",
        request_timeout_s=5.0,
    )


def make_client(settings, handler):
    return InferenceClient(
        settings=settings,
        logger=structlog.get_logger(),
        transport=httpx.MockTransport(handler),
    )


def upstream_count(outcome):
    return REGISTRY.get_sample_value("relay_upstream_requests_total", {"outcome": outcome}) or 0.0


class TestExtractGeneratedText:
    def test_first_candidate(self):
        payload = [{"generated_text": "first"}, {"generated_text": "second"}]
        assert extract_generated_text(payload) == "first"

    def test_extra_fields_ignored(self):
        assert extract_generated_text([{"generated_text": "", "score": 0.1}]) == ""

    @pytest.mark.parametrize(
        "payload",
        [
            {"generated_text": "not a list"},
            {"error": "Model is currently loading"},
            [],
            ["plain string"],
            [{"text": "wrong key"}],
            [{"generated_text": None}],
            [{"generated_text": 42}],
            None,
        ],
    )
    def test_unexpected_shapes(self, payload):
        with pytest.raises(InferenceResponseError):
            extract_generated_text(payload)


class TestInferenceClient:
    @pytest.mark.asyncio
    async def test_generate_text_success(self, settings):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"generated_text": "print('hello')"}])

        client = make_client(settings, handler)
        before = upstream_count("ok")
        try:
            text = await client.generate_text("Convert the following pseudocode to python:\nprint hello")
        finally:
            await client.aclose()

        assert text == "print('hello')"
        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://upstream.test/models/test/model"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {
            "inputs": "Convert the following pseudocode to python:\nprint hello"
        }
        assert upstream_count("ok") == before + 1

    @pytest.mark.asyncio
    async def test_non_2xx_raises_with_status(self, settings):
        def handler(request):
            return httpx.Response(503, json={"error": "Model is currently loading"})

        client = make_client(settings, handler)
        try:
            with pytest.raises(InferenceAPIError) as exc_info:
                await client.generate_text("prompt")
        finally:
            await client.aclose()

        assert exc_info.value.status_code == 503
        assert "Model is currently loading" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_transport_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(settings, handler)
        try:
            with pytest.raises(InferenceAPIError) as exc_info:
                await client.generate_text("prompt")
        finally:
            await client.aclose()

        assert not isinstance(exc_info.value, InferenceResponseError)
        assert "connection refused" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_timeout(self, settings):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        client = make_client(settings, handler)
        before = upstream_count("timeout")
        try:
            with pytest.raises(InferenceAPIError, match="timed out"):
                await client.generate_text("prompt")
        finally:
            await client.aclose()

        assert upstream_count("timeout") == before + 1

    @pytest.mark.asyncio
    async def test_non_json_body(self, settings):
        def handler(request):
            return httpx.Response(200, text="<html>gateway</html>")

        client = make_client(settings, handler)
        try:
            with pytest.raises(InferenceResponseError):
                await client.generate_text("prompt")
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_shape_mismatch(self, settings):
        def handler(request):
            return httpx.Response(200, json={"generated_text": "not wrapped in a list"})

        client = make_client(settings, handler)
        before = upstream_count("bad_response")
        try:
            with pytest.raises(InferenceResponseError):
                await client.generate_text("prompt")
        finally:
            await client.aclose()

        assert upstream_count("bad_response") == before + 1

    @pytest.mark.asyncio
    async def test_slow_upstream_bounded_by_total_timeout(self, settings):
        async def handler(request):
            await asyncio.sleep(2.0)
            return httpx.Response(200, json=[{"generated_text": "late"}])

        fast = settings.model_copy(update={"request_timeout_s": 0.05})
        client = make_client(fast, handler)
        before = upstream_count("timeout")
        start = time.perf_counter()
        try:
            with pytest.raises(InferenceAPIError, match="timed out"):
                await client.generate_text("prompt")
        finally:
            await client.aclose()

        assert time.perf_counter() - start < 1.0
        assert upstream_count("timeout") == before + 1

    @pytest.mark.asyncio
    async def test_timeout_is_configured(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, json=[]))
        try:
            assert client._client.timeout.read == 5.0
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_aclose(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200, json=[]))
        assert client.is_closed is False
        await client.aclose()
        assert client.is_closed is True
