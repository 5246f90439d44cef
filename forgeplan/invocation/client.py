"""Single-call model invocation with timeout and error classification.

``ModelInvocationClient.invoke`` resolves a catalog id to its provider
transport, performs exactly one outbound call under a wall-clock timeout,
and either returns the generated text or raises ``InvocationError`` with
one of the ``ErrorKind`` classes.  Responses are opaque text; nothing is
cached, so identical calls may return different text.
"""

from __future__ import annotations

import asyncio
import time
from typing import Mapping, Optional

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from forgeplan.catalog.models import Provider, TuningParams
from forgeplan.catalog.registry import ModelCatalog
from forgeplan.errors import ErrorKind, InvocationError
from forgeplan.invocation.transports import (
    CompletionRequest,
    CompletionResult,
    MalformedResponseError,
    ProviderTransport,
)

# HTTP statuses that mean "try again later" rather than "this request is wrong".
_TIMEOUT_STATUSES = frozenset({408, 504})
_RATE_LIMIT_STATUSES = frozenset({429, 529})


class InvocationResponse(BaseModel):
    """Structured response from one successful model call."""

    text: str = Field(..., description="Generated text")
    model: str = Field(..., description="Catalog id of the model that answered")
    duration_ms: float = Field(default=0.0, description="Wall-clock call time in ms")
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


def classify_http_status(status_code: int) -> ErrorKind:
    """Map a provider HTTP error status to an ``ErrorKind``."""
    if status_code in _RATE_LIMIT_STATUSES:
        return ErrorKind.RATE_LIMITED
    if status_code in _TIMEOUT_STATUSES:
        return ErrorKind.TIMEOUT
    return ErrorKind.PROVIDER_ERROR


class ModelInvocationClient:
    """Executes one generation call against a catalog model."""

    def __init__(
        self,
        catalog: ModelCatalog,
        transports: Mapping[Provider, ProviderTransport],
        timeout: float = 60.0,
        system_prompt: str = "",
    ) -> None:
        self.catalog = catalog
        self.transports = dict(transports)
        self.timeout = timeout
        self.system_prompt = system_prompt

    async def invoke(
        self,
        model_id: str,
        prompt: str,
        params: TuningParams,
        *,
        system_prompt: Optional[str] = None,
    ) -> InvocationResponse:
        """Generate text for ``prompt`` with ``model_id``.

        Args:
            model_id: Catalog id of the model to call.
            prompt: The user prompt.
            params: Sampling parameters.
            system_prompt: Overrides the client's default system prompt.

        Returns:
            An ``InvocationResponse`` with non-empty text.

        Raises:
            InvocationError: On timeout, rate limiting, provider rejection,
                or an unusable response.
        """
        model = self.catalog.find(model_id)
        if model is None:
            raise InvocationError(ErrorKind.PROVIDER_ERROR, model_id, "Model is not in the catalog")

        transport = self.transports.get(model.provider)
        if transport is None:
            raise InvocationError(
                ErrorKind.PROVIDER_ERROR,
                model_id,
                f"No transport configured for provider '{model.provider.value}'",
            )

        request = CompletionRequest(
            model=model.api_model,
            prompt=prompt,
            system_prompt=self.system_prompt if system_prompt is None else system_prompt,
            params=params,
        )

        start = time.monotonic()
        try:
            result = await asyncio.wait_for(transport.complete(request), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise InvocationError(
                ErrorKind.TIMEOUT, model_id, f"Request timed out after {self.timeout}s"
            ) from exc
        except httpx.TimeoutException as exc:
            raise InvocationError(ErrorKind.TIMEOUT, model_id, f"Transport timeout: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise InvocationError(
                classify_http_status(status),
                model_id,
                f"Provider returned HTTP {status}: {exc.response.text[:500]}",
            ) from exc
        except httpx.HTTPError as exc:
            raise InvocationError(
                ErrorKind.PROVIDER_ERROR, model_id, f"Cannot reach provider: {exc}"
            ) from exc
        except MalformedResponseError as exc:
            raise InvocationError(ErrorKind.INVALID_RESPONSE, model_id, str(exc)) from exc
        except (TypeError, AttributeError, KeyError, IndexError, PydanticValidationError) as exc:
            raise InvocationError(
                ErrorKind.INVALID_RESPONSE, model_id, f"Unexpected response shape: {exc}"
            ) from exc

        if not isinstance(result, CompletionResult):
            raise InvocationError(
                ErrorKind.INVALID_RESPONSE,
                model_id,
                f"Transport returned {type(result).__name__}, not a completion",
            )

        if not result.text.strip():
            raise InvocationError(ErrorKind.INVALID_RESPONSE, model_id, "Provider returned empty text")

        return InvocationResponse(
            text=result.text,
            model=model_id,
            duration_ms=(time.monotonic() - start) * 1000.0,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
        )
