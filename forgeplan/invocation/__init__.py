"""Model invocation: provider transports and the single-call client."""

from forgeplan.invocation.client import (
    InvocationResponse,
    ModelInvocationClient,
    classify_http_status,
)
from forgeplan.invocation.transports import (
    AnthropicTransport,
    CompletionRequest,
    CompletionResult,
    GoogleTransport,
    MalformedResponseError,
    OpenAITransport,
    ProviderTransport,
    build_transports,
)

__all__ = [
    "ModelInvocationClient",
    "InvocationResponse",
    "classify_http_status",
    "ProviderTransport",
    "CompletionRequest",
    "CompletionResult",
    "MalformedResponseError",
    "OpenAITransport",
    "AnthropicTransport",
    "GoogleTransport",
    "build_transports",
]
