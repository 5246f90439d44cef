"""Follow-up generation tasks built on the stage pipeline.

- ``documentation``: project documentation generated from a finished run.
- ``code``: single-stage code generation, documentation, tests and review.
"""

from forgeplan.tasks.code import CODE_TASKS, CodeTask, CodeTaskKind, code_task_stage
from forgeplan.tasks.documentation import (
    SECTION_TITLES,
    DocFormat,
    DocumentationOptions,
    DocumentationSource,
    documentation_stages,
    render_documentation,
)

__all__ = [
    "CODE_TASKS",
    "CodeTask",
    "CodeTaskKind",
    "code_task_stage",
    "SECTION_TITLES",
    "DocFormat",
    "DocumentationOptions",
    "DocumentationSource",
    "documentation_stages",
    "render_documentation",
]
