"""Retry and failover around the model invocation client.

Implements the primary -> retries -> fallback -> retries -> give up chain:
1. Call the primary model.  Timeouts and rate limits are retried with
   exponential backoff up to ``max_retries`` times.
2. Provider rejections and invalid responses are not retried on the same
   model; the dispatcher moves straight on.
3. If a fallback model is configured, the same policy is applied to it.
4. If every model is exhausted, a ``FailureReport`` is returned.

Every attempt is recorded for debugging and reporting.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from rich.markup import escape

from forgeplan.catalog.models import ModelSelection
from forgeplan.config import RetryConfig
from forgeplan.errors import ErrorKind, InvocationError
from forgeplan.invocation.client import ModelInvocationClient
from forgeplan.utils import console, truncate


@dataclass
class DispatchAttempt:
    """Record of a single model call."""

    model_id: str
    attempt_number: int
    success: bool
    started_at: str
    duration_seconds: float
    error_kind: Optional[ErrorKind] = None
    error_message: str = ""


@dataclass
class DispatchResult:
    """Successful outcome: the text and the concrete model that produced it."""

    text: str
    model_used: str
    attempt_history: list[DispatchAttempt] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True

    @property
    def attempts(self) -> int:
        return len(self.attempt_history)


@dataclass
class FailureReport:
    """Terminal failure after every configured model was exhausted."""

    last_error: ErrorKind
    models_attempted: list[str]
    message: str = ""
    attempt_history: list[DispatchAttempt] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return False

    @property
    def attempts(self) -> int:
        return len(self.attempt_history)

    @property
    def last_model(self) -> str:
        """The model whose failure ended the run."""
        return self.models_attempted[-1] if self.models_attempted else ""

    def summary(self) -> str:
        """Return a human-readable summary of the failure."""
        lines = [
            f"Last error: {self.last_error.value}",
            f"Models attempted: {', '.join(self.models_attempted) or '-'}",
            f"Attempts: {self.attempts}",
        ]
        if self.message:
            lines.append(f"Message: {truncate(self.message)}")
        return "\n".join(lines)


DispatchOutcome = Union[DispatchResult, FailureReport]


class FallbackDispatcher:
    """Runs one prompt through the primary/fallback chain of a selection."""

    def __init__(
        self,
        client: ModelInvocationClient,
        retry: Optional[RetryConfig] = None,
    ) -> None:
        self.client = client
        self.retry = retry or RetryConfig()

    async def run(
        self,
        selection: ModelSelection,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        label: str = "",
        on_attempt: Optional[Callable[[DispatchAttempt], None]] = None,
    ) -> DispatchOutcome:
        """Generate ``prompt`` with the selection's models.

        Args:
            selection: A validated model selection.
            prompt: Rendered prompt text.
            system_prompt: Optional system prompt override.
            temperature: Optional per-call temperature override.
            label: Short name used in console output (e.g. the stage key).
            on_attempt: Called with each attempt record just before its call
                goes out, so callers can tell which model is in flight.

        Returns:
            ``DispatchResult`` on success, ``FailureReport`` otherwise.
        """
        params = selection.tuning(temperature)
        history: list[DispatchAttempt] = []
        attempted: list[str] = []
        last_error: Optional[InvocationError] = None
        prefix = f"[{escape(label)}] " if label else ""

        for position, model_id in enumerate(selection.models):
            if position > 0:
                console.print(
                    f"  {prefix}[magenta]Primary {escape(selection.primary_model)} exhausted. "
                    f"Falling back to {escape(model_id)}...[/magenta]"
                )
            attempted.append(model_id)

            for attempt_num in range(1, self.retry.max_retries + 2):
                if attempt_num > 1:
                    delay = self.retry.delay_for(attempt_num - 1)
                    console.print(
                        f"  {prefix}[yellow]Retrying {escape(model_id)} "
                        f"({attempt_num - 1}/{self.retry.max_retries}) in {delay:.1f}s[/yellow]"
                    )
                    if delay > 0:
                        await asyncio.sleep(delay)

                attempt = DispatchAttempt(
                    model_id=model_id,
                    attempt_number=len(history) + 1,
                    success=False,
                    started_at=datetime.now(timezone.utc).isoformat(),
                    duration_seconds=0.0,
                )
                if on_attempt is not None:
                    on_attempt(attempt)
                attempt_start = time.monotonic()

                try:
                    response = await self.client.invoke(
                        model_id, prompt, params, system_prompt=system_prompt
                    )
                except InvocationError as exc:
                    attempt.duration_seconds = time.monotonic() - attempt_start
                    attempt.error_kind = exc.kind
                    attempt.error_message = exc.message
                    history.append(attempt)
                    last_error = exc
                    console.print(
                        f"  {prefix}[red]{escape(model_id)} failed ({exc.kind.value}):[/red] "
                        f"{escape(truncate(exc.message))}"
                    )
                    if not exc.kind.retryable:
                        break
                    continue

                attempt.duration_seconds = time.monotonic() - attempt_start
                attempt.success = True
                history.append(attempt)
                return DispatchResult(
                    text=response.text,
                    model_used=model_id,
                    attempt_history=history,
                )

        assert last_error is not None  # selection.models is never empty
        return FailureReport(
            last_error=last_error.kind,
            models_attempted=attempted,
            message=last_error.message,
            attempt_history=history,
        )
