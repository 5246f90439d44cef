"""Async HTTP transports for the supported model providers.

Each transport speaks one provider wire format over ``httpx.AsyncClient``
and returns the generated text.  Transports do not classify failures: HTTP
and network errors propagate as ``httpx`` exceptions, and a payload without
usable text raises ``MalformedResponseError``.  Classification into
``ErrorKind`` happens in ``ModelInvocationClient``.

Typical usage::

    transport = OpenAITransport(base_url="https://api.openai.com/v1", api_key="sk-...")
    result = await transport.complete(
        CompletionRequest(model="gpt-4-turbo", prompt="Plan a todo app")
    )
    print(result.text)
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, Field

from forgeplan.catalog.models import Provider, TuningParams
from forgeplan.config import Config


class MalformedResponseError(Exception):
    """The provider answered, but not with anything we can use."""


class CompletionRequest(BaseModel):
    """A single provider-agnostic completion request."""

    model: str = Field(..., description="Provider-side model identifier")
    prompt: str
    system_prompt: str = Field(default="")
    params: TuningParams = Field(default_factory=TuningParams)


class CompletionResult(BaseModel):
    """Text and usage reported by a provider."""

    text: str
    model: str = Field(default="", description="Model the provider says answered")
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


@runtime_checkable
class ProviderTransport(Protocol):
    """Anything that can turn a ``CompletionRequest`` into text."""

    async def complete(self, request: CompletionRequest) -> CompletionResult: ...


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class _HTTPTransport:
    """Common plumbing: base URL, key, and a fresh client per call."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        api_version: str = "",
        connect_timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.api_version = api_version
        self.connect_timeout = connect_timeout

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient``.

        The overall read deadline is enforced by the invocation client, so
        only the connect phase is bounded here.
        """
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=httpx.Timeout(None, connect=self.connect_timeout),
        )

    async def _post(self, path: str, payload: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.post(path, json=payload, **kwargs)
            response.raise_for_status()
            try:
                data = response.json()
            except ValueError as exc:
                raise MalformedResponseError(f"Response is not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError("Response JSON is not an object")
        return data


# ---------------------------------------------------------------------------
# Response shape checks
# ---------------------------------------------------------------------------


def _object(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise MalformedResponseError(f"Expected {what} to be an object, got {type(value).__name__}")
    return value


def _text(value: Any, what: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedResponseError(f"Expected {what} to be a string, got {type(value).__name__}")
    return value


def _usage(value: Any) -> dict[str, Any]:
    # Usage is optional; anything but an object counts as absent.
    return value if isinstance(value, dict) else {}


def _token_count(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _model_name(value: Any) -> str:
    return value if isinstance(value, str) else ""


# ---------------------------------------------------------------------------
# OpenAI-compatible chat completions
# ---------------------------------------------------------------------------


class OpenAITransport(_HTTPTransport):
    """``POST /chat/completions`` (OpenAI and OpenAI-compatible hosts)."""

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def build_payload(request: CompletionRequest) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        params = request.params
        return {
            "model": request.model,
            "messages": messages,
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
            "top_p": params.top_p,
            "frequency_penalty": params.frequency_penalty,
            "presence_penalty": params.presence_penalty,
            "stream": False,
        }

    @staticmethod
    def parse_response(data: dict[str, Any]) -> CompletionResult:
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise MalformedResponseError("No choices in completion response")
        message = _object(choices[0], "choice").get("message") or {}
        text = _text(_object(message, "message").get("content"), "message content")
        usage = _usage(data.get("usage"))
        return CompletionResult(
            text=text,
            model=_model_name(data.get("model")),
            input_tokens=_token_count(usage.get("prompt_tokens")),
            output_tokens=_token_count(usage.get("completion_tokens")),
        )

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        data = await self._post("/chat/completions", self.build_payload(request))
        return self.parse_response(data)


# ---------------------------------------------------------------------------
# Anthropic messages
# ---------------------------------------------------------------------------


class AnthropicTransport(_HTTPTransport):
    """``POST /v1/messages``.

    The messages API has no frequency/presence penalties; they are dropped.
    """

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["x-api-key"] = self.api_key
        headers["anthropic-version"] = self.api_version or "2023-06-01"
        return headers

    @staticmethod
    def build_payload(request: CompletionRequest) -> dict[str, Any]:
        params = request.params
        payload: dict[str, Any] = {
            "model": request.model,
            "max_tokens": params.max_tokens,
            "messages": [{"role": "user", "content": request.prompt}],
            # Anthropic caps temperature at 1.0.
            "temperature": min(params.temperature, 1.0),
            "top_p": params.top_p,
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        return payload

    @staticmethod
    def parse_response(data: dict[str, Any]) -> CompletionResult:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise MalformedResponseError("No content blocks in messages response")
        text = "".join(
            _text(block.get("text"), "text block")
            for block in (_object(b, "content block") for b in blocks)
            if block.get("type") == "text"
        )
        usage = _usage(data.get("usage"))
        return CompletionResult(
            text=text,
            model=_model_name(data.get("model")),
            input_tokens=_token_count(usage.get("input_tokens")),
            output_tokens=_token_count(usage.get("output_tokens")),
        )

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        data = await self._post("/v1/messages", self.build_payload(request))
        return self.parse_response(data)


# ---------------------------------------------------------------------------
# Google generateContent
# ---------------------------------------------------------------------------


class GoogleTransport(_HTTPTransport):
    """``POST /models/{model}:generateContent``."""

    @staticmethod
    def build_payload(request: CompletionRequest) -> dict[str, Any]:
        params = request.params
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "temperature": params.temperature,
                "maxOutputTokens": params.max_tokens,
                "topP": params.top_p,
                "frequencyPenalty": params.frequency_penalty,
                "presencePenalty": params.presence_penalty,
            },
        }
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        return payload

    @staticmethod
    def parse_response(data: dict[str, Any]) -> CompletionResult:
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            raise MalformedResponseError("No candidates in generateContent response")
        content = _object(candidates[0], "candidate").get("content") or {}
        parts = _object(content, "candidate content").get("parts") or []
        if not isinstance(parts, list):
            raise MalformedResponseError("Candidate parts is not a list")
        text = "".join(_text(_object(p, "part").get("text"), "part text") for p in parts)
        usage = _usage(data.get("usageMetadata"))
        return CompletionResult(
            text=text,
            model=_model_name(data.get("modelVersion")),
            input_tokens=_token_count(usage.get("promptTokenCount")),
            output_tokens=_token_count(usage.get("candidatesTokenCount")),
        )

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        data = await self._post(
            f"/models/{request.model}:generateContent",
            self.build_payload(request),
            params={"key": self.api_key} if self.api_key else None,
        )
        return self.parse_response(data)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_TRANSPORT_TYPES: dict[Provider, type[_HTTPTransport]] = {
    Provider.OPENAI: OpenAITransport,
    Provider.ANTHROPIC: AnthropicTransport,
    Provider.GOOGLE: GoogleTransport,
    Provider.META: OpenAITransport,
}


def build_transports(config: Config) -> dict[Provider, ProviderTransport]:
    """Create one transport per provider configured in ``config.providers``."""
    transports: dict[Provider, ProviderTransport] = {}
    for name, settings in config.providers.items():
        provider = Provider(name)
        transport_cls = _TRANSPORT_TYPES[provider]
        transports[provider] = transport_cls(
            base_url=settings.base_url,
            api_key=settings.resolve_api_key(),
            api_version=settings.api_version,
        )
    return transports
