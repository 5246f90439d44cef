"""Exception taxonomy for the generation engine.

Only ``ValidationError`` and ``NotFoundError`` ever escape the public entry
points.  ``InvocationError`` is raised by the invocation client and absorbed
by the fallback dispatcher; a stage that still fails after fallback is
recorded in the bundle rather than raised.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failed model invocation."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    INVALID_RESPONSE = "invalid_response"

    @property
    def retryable(self) -> bool:
        """Transient load-related failures are worth retrying on the same model."""
        return self in (ErrorKind.TIMEOUT, ErrorKind.RATE_LIMITED)


class ForgeplanError(Exception):
    """Base class for all engine errors."""


class ValidationError(ForgeplanError):
    """The request itself is malformed; no model call was attempted."""

    def __init__(self, reasons: list[str]) -> None:
        self.reasons = list(reasons)
        super().__init__("; ".join(self.reasons) or "Invalid request")


class NotFoundError(ForgeplanError):
    """An unknown model or template id was requested."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class InvocationError(ForgeplanError):
    """A single model call failed."""

    def __init__(self, kind: ErrorKind, model_id: str, message: str = "") -> None:
        self.kind = kind
        self.model_id = model_id
        self.message = message
        super().__init__(f"[{kind.value}] {model_id}: {message}" if message else f"[{kind.value}] {model_id}")
