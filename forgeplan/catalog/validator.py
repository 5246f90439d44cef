"""Selection validation against the catalog and numeric bounds.

Every rule is checked independently and all violations are reported
together, so the caller can fix a request in one round trip.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from forgeplan.catalog.models import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    ModelSelection,
    PartialModelSelection,
)
from forgeplan.catalog.registry import ModelCatalog
from forgeplan.errors import ValidationError

SelectionLike = Union[PartialModelSelection, ModelSelection, Mapping[str, Any]]


def _in_range(value: Optional[float], low: float, high: float) -> bool:
    return value is None or low <= value <= high


class SelectionValidator:
    """Checks requested model selections against a ``ModelCatalog``."""

    def __init__(self, catalog: ModelCatalog) -> None:
        self.catalog = catalog

    @staticmethod
    def _parse(selection: SelectionLike) -> tuple[PartialModelSelection, list[str]]:
        """Coerce ``selection``, reporting fields of the wrong type.

        Fields that fail to parse are reported and then treated as absent,
        so the remaining rules are still checked on everything else.
        """
        if isinstance(selection, PartialModelSelection):
            return selection, []
        if isinstance(selection, ModelSelection):
            return PartialModelSelection(**selection.model_dump()), []

        data = dict(selection)
        try:
            return PartialModelSelection.model_validate(data), []
        except PydanticValidationError as exc:
            errors = exc.errors()

        reasons = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in errors]
        bad_fields = {err["loc"][0] for err in errors if err["loc"]}
        usable = {key: value for key, value in data.items() if key not in bad_fields}
        return PartialModelSelection.model_validate(usable), reasons

    def check(self, selection: SelectionLike) -> list[str]:
        """Return every rule the selection violates (empty when valid)."""
        sel, errors = self._parse(selection)
        return errors + self._violations(sel)

    def _violations(self, sel: PartialModelSelection) -> list[str]:
        errors: list[str] = []

        if not sel.primary_model:
            errors.append("Primary model is required")
        elif sel.primary_model not in self.catalog:
            errors.append(f"Invalid primary model: {sel.primary_model}")

        if sel.fallback_model and sel.fallback_model not in self.catalog:
            errors.append(f"Invalid fallback model: {sel.fallback_model}")

        if not _in_range(sel.temperature, 0, 2):
            errors.append("Temperature must be between 0 and 2")

        if sel.max_tokens is not None and sel.max_tokens < 1:
            errors.append("Max tokens must be greater than 0")

        if not _in_range(sel.top_p, 0, 1):
            errors.append("Top P must be between 0 and 1")

        if not _in_range(sel.frequency_penalty, -2, 2):
            errors.append("Frequency penalty must be between -2 and 2")

        if not _in_range(sel.presence_penalty, -2, 2):
            errors.append("Presence penalty must be between -2 and 2")

        return errors

    def validate(self, selection: SelectionLike) -> ModelSelection:
        """Return a complete ``ModelSelection`` or raise ``ValidationError``.

        Tuning fields the caller left out receive the engine defaults.
        """
        sel, errors = self._parse(selection)
        errors += self._violations(sel)
        if errors:
            raise ValidationError(errors)

        return ModelSelection(
            primary_model=sel.primary_model,
            fallback_model=sel.fallback_model or None,
            temperature=DEFAULT_TEMPERATURE if sel.temperature is None else sel.temperature,
            max_tokens=DEFAULT_MAX_TOKENS if sel.max_tokens is None else sel.max_tokens,
            top_p=DEFAULT_TOP_P if sel.top_p is None else sel.top_p,
            frequency_penalty=sel.frequency_penalty or 0.0,
            presence_penalty=sel.presence_penalty or 0.0,
        )
