"""Unit tests for ModelInvocationClient (forgeplan.invocation.client).

Tests cover:
- classify_http_status
- Successful invocation and the request handed to the transport
- Error classification: timeout, rate limit, provider error, invalid response
- Unknown models and providers without a transport
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from forgeplan.catalog.models import Provider, TuningParams
from forgeplan.catalog.registry import ModelCatalog
from forgeplan.errors import ErrorKind, InvocationError
from forgeplan.invocation.client import ModelInvocationClient, classify_http_status
from forgeplan.invocation.transports import (
    CompletionResult,
    MalformedResponseError,
    OpenAITransport,
)


def _status_error(status: int, body: str = "error body") -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.test/chat/completions")
    response = httpx.Response(status, text=body, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


def _client(catalog: ModelCatalog, transport: AsyncMock, **kwargs) -> ModelInvocationClient:
    return ModelInvocationClient(
        catalog, {provider: transport for provider in Provider}, **kwargs
    )


@pytest.fixture
def transport() -> AsyncMock:
    mock = AsyncMock()
    mock.complete = AsyncMock(
        return_value=CompletionResult(text="# Plan", input_tokens=12, output_tokens=34)
    )
    return mock


# ---------------------------------------------------------------------------
# classify_http_status
# ---------------------------------------------------------------------------


class TestClassifyHttpStatus:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "status, kind",
        [
            (429, ErrorKind.RATE_LIMITED),
            (529, ErrorKind.RATE_LIMITED),
            (408, ErrorKind.TIMEOUT),
            (504, ErrorKind.TIMEOUT),
            (400, ErrorKind.PROVIDER_ERROR),
            (401, ErrorKind.PROVIDER_ERROR),
            (500, ErrorKind.PROVIDER_ERROR),
            (503, ErrorKind.PROVIDER_ERROR),
        ],
    )
    def test_mapping(self, status, kind):
        assert classify_http_status(status) is kind


# ---------------------------------------------------------------------------
# Success
# ---------------------------------------------------------------------------


class TestInvokeSuccess:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_text_and_usage(self, catalog, transport):
        client = _client(catalog, transport)
        response = await client.invoke("gpt-4o", "Plan a todo app", TuningParams())

        assert response.text == "# Plan"
        assert response.model == "gpt-4o"
        assert response.input_tokens == 12
        assert response.output_tokens == 34
        assert response.duration_ms >= 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_request_uses_provider_model_name(self, catalog, transport):
        client = _client(catalog, transport, system_prompt="default system")
        params = TuningParams(temperature=0.3, max_tokens=256)
        await client.invoke("claude-3-sonnet", "Describe the API", params)

        request = transport.complete.call_args[0][0]
        assert request.model == "claude-3-sonnet-20240229"
        assert request.prompt == "Describe the API"
        assert request.system_prompt == "default system"
        assert request.params == params

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_system_prompt_override(self, catalog, transport):
        client = _client(catalog, transport, system_prompt="default system")
        await client.invoke("gpt-4o", "x", TuningParams(), system_prompt="")

        assert transport.complete.call_args[0][0].system_prompt == ""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_routes_by_provider(self, catalog):
        openai, google = AsyncMock(), AsyncMock()
        openai.complete = AsyncMock(return_value=CompletionResult(text="openai"))
        google.complete = AsyncMock(return_value=CompletionResult(text="google"))
        client = ModelInvocationClient(
            catalog, {Provider.OPENAI: openai, Provider.GOOGLE: google}
        )

        response = await client.invoke("gemini-pro", "x", TuningParams())

        assert response.text == "google"
        openai.complete.assert_not_called()


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestInvokeFailures:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_model(self, catalog, transport):
        client = _client(catalog, transport)
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-5", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.PROVIDER_ERROR
        assert exc_info.value.model_id == "gpt-5"
        transport.complete.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_transport(self, catalog, transport):
        client = ModelInvocationClient(catalog, {Provider.OPENAI: transport})
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("llama-3-70b", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.PROVIDER_ERROR
        assert "meta" in exc_info.value.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_wall_clock_timeout(self, catalog):
        async def _slow(request):
            await asyncio.sleep(5)

        slow = AsyncMock()
        slow.complete = AsyncMock(side_effect=_slow)
        client = _client(catalog, slow, timeout=0.05)

        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.TIMEOUT

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_timeout(self, catalog, transport):
        transport.complete.side_effect = httpx.ReadTimeout("read timed out")
        client = _client(catalog, transport)
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.TIMEOUT

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limited(self, catalog, transport):
        transport.complete.side_effect = _status_error(429, "slow down")
        client = _client(catalog, transport)
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.RATE_LIMITED
        assert "429" in exc_info.value.message
        assert "slow down" in exc_info.value.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_http_rejection(self, catalog, transport):
        transport.complete.side_effect = _status_error(401, "bad key")
        client = _client(catalog, transport)
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.PROVIDER_ERROR

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connection_error(self, catalog, transport):
        transport.complete.side_effect = httpx.ConnectError("Connection refused")
        client = _client(catalog, transport)
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.PROVIDER_ERROR
        assert "Connection refused" in exc_info.value.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_response(self, catalog, transport):
        transport.complete.side_effect = MalformedResponseError("No choices")
        client = _client(catalog, transport)
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.INVALID_RESPONSE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_text_is_invalid(self, catalog, transport):
        transport.complete.return_value = CompletionResult(text="   \n")
        client = _client(catalog, transport)
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.INVALID_RESPONSE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_shape_from_transport_is_invalid(self, catalog, transport):
        transport.complete.side_effect = AttributeError("'str' object has no attribute 'get'")
        client = _client(catalog, transport)
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.INVALID_RESPONSE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_completion_result_is_invalid(self, catalog, transport):
        transport.complete.return_value = {"text": "not a CompletionResult"}
        client = _client(catalog, transport)
        with pytest.raises(InvocationError) as exc_info:
            await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.INVALID_RESPONSE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_openai_choice_that_is_not_an_object(self, catalog):
        openai = OpenAITransport("https://api.example.test/v1")
        client = ModelInvocationClient(catalog, {Provider.OPENAI: openai})
        with patch.object(OpenAITransport, "_post", AsyncMock(return_value={"choices": ["oops"]})):
            with pytest.raises(InvocationError) as exc_info:
                await client.invoke("gpt-4o", "x", TuningParams())
        assert exc_info.value.kind is ErrorKind.INVALID_RESPONSE
