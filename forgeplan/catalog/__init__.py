"""Model catalog and selection validation.

Usage::

    from forgeplan.catalog import ModelCatalog, SelectionValidator

    catalog = ModelCatalog()
    selection = SelectionValidator(catalog).validate(
        {"primaryModel": "gpt-4-turbo", "fallbackModel": "claude-3-sonnet"}
    )
"""

from forgeplan.catalog.models import (
    AIModel,
    ModelSelection,
    PartialModelSelection,
    Provider,
    TokenCost,
    TuningParams,
)
from forgeplan.catalog.registry import DEFAULT_MODELS, ModelCatalog
from forgeplan.catalog.validator import SelectionValidator

__all__ = [
    "AIModel",
    "Provider",
    "TokenCost",
    "ModelSelection",
    "PartialModelSelection",
    "TuningParams",
    "ModelCatalog",
    "DEFAULT_MODELS",
    "SelectionValidator",
]
