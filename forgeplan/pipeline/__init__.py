"""Stage pipeline: stage definitions, prompt rendering and bundle assembly.

Usage::

    from forgeplan.pipeline import ProjectInput, StagePipeline, default_stages

    bundle = await pipeline.run(ProjectInput(description="a todo app"), selection)
    print(bundle.overall_status, bundle.deliverables().keys())
"""

from forgeplan.pipeline.models import (
    DeliverableBundle,
    OverallStatus,
    ProjectInput,
    StageResult,
    StageStatus,
    compute_overall_status,
)
from forgeplan.pipeline.orchestrator import StagePipeline
from forgeplan.pipeline.stages import (
    DEFAULT_STAGE_KEYS,
    GenerationStage,
    PromptRenderer,
    TemplatePrompt,
    default_stages,
)

__all__ = [
    "ProjectInput",
    "StageResult",
    "StageStatus",
    "OverallStatus",
    "DeliverableBundle",
    "compute_overall_status",
    "StagePipeline",
    "GenerationStage",
    "PromptRenderer",
    "TemplatePrompt",
    "DEFAULT_STAGE_KEYS",
    "default_stages",
]
