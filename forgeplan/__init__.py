"""forgeplan -- multi-stage project generation on top of hosted AI models.

Usage::

    from forgeplan import Config, GenerationEngine

    engine = GenerationEngine.from_config(Config.from_env())
    bundle = await engine.generate_project(
        "A marketplace for local artists",
        {"primary_model": "gpt-4-turbo", "fallback_model": "claude-3-sonnet"},
    )
    print(bundle.summary())
"""

from forgeplan.catalog import (
    AIModel,
    ModelCatalog,
    ModelSelection,
    PartialModelSelection,
    SelectionValidator,
)
from forgeplan.config import Config
from forgeplan.engine import GenerationEngine
from forgeplan.errors import (
    ErrorKind,
    ForgeplanError,
    InvocationError,
    NotFoundError,
    ValidationError,
)
from forgeplan.pipeline import (
    DeliverableBundle,
    OverallStatus,
    ProjectInput,
    StageResult,
    StageStatus,
)
from forgeplan.tasks import (
    CodeTaskKind,
    DocFormat,
    DocumentationOptions,
    DocumentationSource,
    render_documentation,
)

__version__ = "0.1.0"

__all__ = [
    "GenerationEngine",
    "Config",
    "AIModel",
    "ModelCatalog",
    "ModelSelection",
    "PartialModelSelection",
    "SelectionValidator",
    "ProjectInput",
    "DeliverableBundle",
    "StageResult",
    "StageStatus",
    "OverallStatus",
    "ErrorKind",
    "ForgeplanError",
    "ValidationError",
    "NotFoundError",
    "InvocationError",
    "DocumentationSource",
    "DocumentationOptions",
    "DocFormat",
    "render_documentation",
    "CodeTaskKind",
]
