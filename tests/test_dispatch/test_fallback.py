"""Unit tests for FallbackDispatcher and related records (forgeplan.dispatch.fallback).

Tests cover:
- DispatchAttempt / DispatchResult / FailureReport records and summary()
- RetryConfig.delay_for
- FallbackDispatcher.run
  - Primary succeeds on the first attempt
  - Primary times out, succeeds on retry
  - Primary exhausts retries, fallback succeeds
  - Non-retryable primary error fails over immediately
  - Every model fails
  - Fallback identical to the primary is not tried twice
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from forgeplan.config import RetryConfig
from forgeplan.dispatch.fallback import (
    DispatchAttempt,
    DispatchResult,
    FailureReport,
    FallbackDispatcher,
)
from forgeplan.errors import ErrorKind

T = ErrorKind.TIMEOUT
R = ErrorKind.RATE_LIMITED
P = ErrorKind.PROVIDER_ERROR
I = ErrorKind.INVALID_RESPONSE  # noqa: E741


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class TestRecords:
    @pytest.mark.unit
    def test_attempt_defaults(self):
        attempt = DispatchAttempt(
            model_id="gpt-4o",
            attempt_number=1,
            success=False,
            started_at="2026-01-15T10:00:00Z",
            duration_seconds=1.0,
        )
        assert attempt.error_kind is None
        assert attempt.error_message == ""

    @pytest.mark.unit
    def test_result_properties(self):
        result = DispatchResult(text="ok", model_used="gpt-4o")
        assert result.success is True
        assert result.attempts == 0

    @pytest.mark.unit
    def test_failure_summary(self):
        report = FailureReport(
            last_error=ErrorKind.RATE_LIMITED,
            models_attempted=["gpt-4o", "claude-3-sonnet"],
            message="Provider returned HTTP 429",
        )
        summary = report.summary()
        assert report.success is False
        assert report.last_model == "claude-3-sonnet"
        assert "rate_limited" in summary
        assert "gpt-4o, claude-3-sonnet" in summary
        assert "HTTP 429" in summary


class TestRetryDelay:
    @pytest.mark.unit
    def test_exponential(self):
        retry = RetryConfig(backoff_base=1.0, backoff_max=8.0)
        assert [retry.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 8.0]

    @pytest.mark.unit
    def test_zero_base_never_sleeps(self):
        assert RetryConfig(backoff_base=0.0).delay_for(3) == 0.0

    @pytest.mark.unit
    def test_non_positive_retry_number(self):
        assert RetryConfig().delay_for(0) == 0.0


# ---------------------------------------------------------------------------
# FallbackDispatcher.run
# ---------------------------------------------------------------------------


class TestDispatch:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_primary_first_try(self, make_client, selection, fast_retry):
        client = make_client()
        outcome = await FallbackDispatcher(client, fast_retry).run(selection, "prompt")

        assert isinstance(outcome, DispatchResult)
        assert outcome.text == "gpt-4-turbo output"
        assert outcome.model_used == "gpt-4-turbo"
        assert outcome.attempts == 1
        assert client.models_called() == ["gpt-4-turbo"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_primary_retry_then_success(self, make_client, selection, fast_retry):
        client = make_client({"gpt-4-turbo": [T, R, "third time lucky"]})
        outcome = await FallbackDispatcher(client, fast_retry).run(selection, "prompt")

        assert outcome.success
        assert outcome.text == "third time lucky"
        assert outcome.model_used == "gpt-4-turbo"
        assert [a.error_kind for a in outcome.attempt_history] == [T, R, None]
        assert client.models_called() == ["gpt-4-turbo"] * 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fallback_after_retries_exhausted(self, make_client, selection, fast_retry):
        client = make_client({"gpt-4-turbo": [T, T, T]})
        outcome = await FallbackDispatcher(client, fast_retry).run(selection, "prompt")

        assert isinstance(outcome, DispatchResult)
        assert outcome.model_used == "claude-3-sonnet"
        assert client.models_called() == ["gpt-4-turbo"] * 3 + ["claude-3-sonnet"]
        assert [a.attempt_number for a in outcome.attempt_history] == [1, 2, 3, 4]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fallback_gets_the_same_retry_budget(self, make_client, selection, fast_retry):
        client = make_client(
            {"gpt-4-turbo": [R, R, R], "claude-3-sonnet": [T, T, "late answer"]}
        )
        outcome = await FallbackDispatcher(client, fast_retry).run(selection, "prompt")

        assert outcome.success
        assert outcome.text == "late answer"
        assert outcome.attempts == 6

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_retryable_fails_over_immediately(self, make_client, selection, fast_retry):
        client = make_client({"gpt-4-turbo": [P]})
        outcome = await FallbackDispatcher(client, fast_retry).run(selection, "prompt")

        assert outcome.model_used == "claude-3-sonnet"
        assert client.models_called() == ["gpt-4-turbo", "claude-3-sonnet"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_response_is_not_retried(self, make_client, solo_selection, fast_retry):
        client = make_client({"gpt-4-turbo": [I, "never reached"]})
        outcome = await FallbackDispatcher(client, fast_retry).run(solo_selection, "prompt")

        assert isinstance(outcome, FailureReport)
        assert outcome.last_error is I
        assert outcome.attempts == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_error_without_fallback(self, make_client, solo_selection, fast_retry):
        client = make_client({"gpt-4-turbo": [P]})
        outcome = await FallbackDispatcher(client, fast_retry).run(solo_selection, "prompt")

        assert isinstance(outcome, FailureReport)
        assert outcome.last_error is P
        assert outcome.models_attempted == ["gpt-4-turbo"]
        assert outcome.attempts == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_everything_fails(self, make_client, selection, fast_retry):
        client = make_client({"gpt-4-turbo": [T, T, T], "claude-3-sonnet": [R, R, P]})
        outcome = await FallbackDispatcher(client, fast_retry).run(selection, "prompt")

        assert isinstance(outcome, FailureReport)
        assert outcome.last_error is P
        assert outcome.models_attempted == ["gpt-4-turbo", "claude-3-sonnet"]
        assert outcome.last_model == "claude-3-sonnet"
        assert outcome.attempts == 6
        assert "scripted provider_error" in outcome.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zero_retries(self, make_client, selection):
        client = make_client({"gpt-4-turbo": [T], "claude-3-sonnet": [T]})
        outcome = await FallbackDispatcher(client, RetryConfig(max_retries=0)).run(
            selection, "prompt"
        )

        assert isinstance(outcome, FailureReport)
        assert outcome.last_error is T
        assert client.models_called() == ["gpt-4-turbo", "claude-3-sonnet"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_same_fallback_not_tried_twice(self, make_client, validator, fast_retry):
        selection = validator.validate(
            {"primary_model": "gpt-4o", "fallback_model": "gpt-4o"}
        )
        client = make_client({"gpt-4o": [P]})
        outcome = await FallbackDispatcher(client, fast_retry).run(selection, "prompt")

        assert isinstance(outcome, FailureReport)
        assert client.models_called() == ["gpt-4o"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_temperature_and_system_prompt_forwarded(self, make_client, selection, fast_retry):
        client = make_client()
        await FallbackDispatcher(client, fast_retry).run(
            selection, "prompt", system_prompt="be terse", temperature=0.1
        )

        call = client.calls[0]
        assert call.params.temperature == 0.1
        assert call.params.max_tokens == selection.max_tokens
        assert call.system_prompt == "be terse"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_backoff_sleeps_between_retries(self, make_client, solo_selection):
        client = make_client({"gpt-4-turbo": [T, T, "ok"]})
        retry = RetryConfig(max_retries=2, backoff_base=0.5, backoff_max=8.0)

        with patch("forgeplan.dispatch.fallback.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            outcome = await FallbackDispatcher(client, retry).run(solo_selection, "prompt")

        assert outcome.success
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0]
