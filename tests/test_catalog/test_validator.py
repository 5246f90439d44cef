"""Unit tests for SelectionValidator (forgeplan.catalog.validator)."""

from __future__ import annotations

import pytest

from forgeplan.catalog.models import ModelSelection, PartialModelSelection
from forgeplan.catalog.validator import SelectionValidator
from forgeplan.errors import ValidationError


class TestCheck:
    @pytest.mark.unit
    def test_valid_selection_has_no_errors(self, validator: SelectionValidator):
        assert validator.check({"primary_model": "gpt-4o", "fallback_model": "gemini-pro"}) == []

    @pytest.mark.unit
    def test_missing_primary(self, validator: SelectionValidator):
        assert validator.check({}) == ["Primary model is required"]

    @pytest.mark.unit
    def test_empty_primary(self, validator: SelectionValidator):
        assert validator.check({"primary_model": ""}) == ["Primary model is required"]

    @pytest.mark.unit
    def test_unknown_models(self, validator: SelectionValidator):
        errors = validator.check({"primary_model": "gpt-5", "fallback_model": "claude-9"})
        assert errors == ["Invalid primary model: gpt-5", "Invalid fallback model: claude-9"]

    @pytest.mark.unit
    def test_every_violation_is_reported(self, validator: SelectionValidator):
        errors = validator.check(
            {
                "primaryModel": "gpt-5",
                "fallbackModel": "nope",
                "temperature": 3,
                "maxTokens": 0,
                "topP": 1.5,
                "frequencyPenalty": -3,
                "presencePenalty": 2.5,
            }
        )
        assert errors == [
            "Invalid primary model: gpt-5",
            "Invalid fallback model: nope",
            "Temperature must be between 0 and 2",
            "Max tokens must be greater than 0",
            "Top P must be between 0 and 1",
            "Frequency penalty must be between -2 and 2",
            "Presence penalty must be between -2 and 2",
        ]

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "field, value",
        [
            ("temperature", 0),
            ("temperature", 2),
            ("top_p", 0),
            ("top_p", 1),
            ("frequency_penalty", -2),
            ("presence_penalty", 2),
        ],
    )
    def test_bounds_are_inclusive(self, validator: SelectionValidator, field, value):
        assert validator.check({"primary_model": "gpt-4o", field: value}) == []

    @pytest.mark.unit
    def test_accepts_partial_model(self, validator: SelectionValidator):
        partial = PartialModelSelection(primary_model="gpt-4o", temperature=-1)
        assert validator.check(partial) == ["Temperature must be between 0 and 2"]


class TestValidate:
    @pytest.mark.unit
    def test_defaults_filled_in(self, validator: SelectionValidator):
        selection = validator.validate({"primary_model": "gpt-4-turbo"})
        assert isinstance(selection, ModelSelection)
        assert selection.fallback_model is None
        assert selection.temperature == 0.7
        assert selection.max_tokens == 4000
        assert selection.top_p == 1.0
        assert selection.frequency_penalty == 0.0
        assert selection.presence_penalty == 0.0

    @pytest.mark.unit
    def test_explicit_values_kept(self, validator: SelectionValidator):
        selection = validator.validate(
            {"primary_model": "gpt-4o", "temperature": 0.0, "max_tokens": 512, "top_p": 0.0}
        )
        assert selection.temperature == 0.0
        assert selection.max_tokens == 512
        assert selection.top_p == 0.0

    @pytest.mark.unit
    def test_raises_with_all_reasons(self, validator: SelectionValidator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"primary_model": "gpt-5", "temperature": 9})
        assert exc_info.value.reasons == [
            "Invalid primary model: gpt-5",
            "Temperature must be between 0 and 2",
        ]

    @pytest.mark.unit
    def test_empty_fallback_means_none(self, validator: SelectionValidator):
        selection = validator.validate({"primary_model": "gpt-4o", "fallback_model": ""})
        assert selection.fallback_model is None

    @pytest.mark.unit
    def test_wrong_type_is_a_validation_error(self, validator: SelectionValidator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"primary_model": "gpt-4o", "temperature": "hot"})
        assert any("temperature" in reason for reason in exc_info.value.reasons)

    @pytest.mark.unit
    def test_wrong_type_does_not_hide_other_violations(self, validator: SelectionValidator):
        reasons = validator.check(
            {"primaryModel": "gpt-5", "temperature": "hot", "topP": 3, "maxTokens": "lots"}
        )

        assert len(reasons) == 4
        assert any(reason.startswith("temperature:") for reason in reasons)
        assert any(reason.startswith("maxTokens:") for reason in reasons)
        assert "Invalid primary model: gpt-5" in reasons
        assert "Top P must be between 0 and 1" in reasons

    @pytest.mark.unit
    def test_revalidating_a_selection_is_stable(
        self, validator: SelectionValidator, selection: ModelSelection
    ):
        assert validator.validate(selection) == selection


class TestModelSelection:
    @pytest.mark.unit
    def test_models_chain(self, selection: ModelSelection):
        assert selection.models == ["gpt-4-turbo", "claude-3-sonnet"]

    @pytest.mark.unit
    def test_fallback_equal_to_primary_is_skipped(self, validator: SelectionValidator):
        selection = validator.validate(
            {"primary_model": "gpt-4o", "fallback_model": "gpt-4o"}
        )
        assert selection.models == ["gpt-4o"]

    @pytest.mark.unit
    def test_tuning_temperature_override(self, selection: ModelSelection):
        assert selection.tuning().temperature == 0.7
        assert selection.tuning(0.2).temperature == 0.2
        assert selection.tuning(0.2).max_tokens == selection.max_tokens
