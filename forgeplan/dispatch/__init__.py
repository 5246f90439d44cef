"""Primary/fallback dispatch with retry and backoff."""

from forgeplan.dispatch.fallback import (
    DispatchAttempt,
    DispatchOutcome,
    DispatchResult,
    FailureReport,
    FallbackDispatcher,
)

__all__ = [
    "FallbackDispatcher",
    "DispatchAttempt",
    "DispatchResult",
    "DispatchOutcome",
    "FailureReport",
]
