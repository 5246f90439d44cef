"""Turn a stored ``ProjectTemplate`` into a stage list and run it."""

from __future__ import annotations

import re
from typing import Optional

from rich.markup import escape

from forgeplan.catalog.models import PartialModelSelection
from forgeplan.catalog.registry import ModelCatalog
from forgeplan.catalog.validator import SelectionValidator
from forgeplan.errors import ValidationError
from forgeplan.pipeline.models import DeliverableBundle, ProjectInput
from forgeplan.pipeline.orchestrator import StagePipeline
from forgeplan.pipeline.stages import GenerationStage
from forgeplan.templates.models import ProjectTemplate, TemplateSection
from forgeplan.utils import console

DESCRIPTION_SUFFIX = "\n\nProject Description: {description}"
DESCRIPTION_PLACEHOLDER = re.compile(r"\{\{\s*description\s*\}\}")


class SectionPrompt:
    """Prompt builder for one template section.

    Stored prompt text is plain text, never template source: braces such as
    ``${{ secrets.TOKEN }}`` or JSX ``style={{...}}`` pass through
    untouched.  The one exception is a literal ``{{ description }}``
    placeholder, which is replaced with the project description.  Sections
    without it get the description appended as a suffix.
    """

    def __init__(self, section: TemplateSection, description: str) -> None:
        self.section = section
        self.description = description

    def __call__(self, project: ProjectInput) -> str:
        text = self.section.prompt_template
        if DESCRIPTION_PLACEHOLDER.search(text):
            return DESCRIPTION_PLACEHOLDER.sub(lambda _match: self.description, text)
        return text + DESCRIPTION_SUFFIX.format(description=self.description)

    def __repr__(self) -> str:
        return f"SectionPrompt({self.section.section_key!r})"


class TemplateExpander:
    """Expands templates into stage lists for the ``StagePipeline``.

    Attributes:
        catalog: Used to choose the fallback model for the run.
        validator: Validates the selection built for the run.
        pipeline: Executes the generated stages.
    """

    def __init__(
        self,
        catalog: ModelCatalog,
        pipeline: StagePipeline,
        validator: Optional[SelectionValidator] = None,
    ) -> None:
        self.catalog = catalog
        self.pipeline = pipeline
        self.validator = validator or SelectionValidator(catalog)

    def build_stages(self, template: ProjectTemplate, description: str) -> list[GenerationStage]:
        """One required stage per template section, in section order."""
        if not template.prompts:
            raise ValidationError([f"Template '{template.id}' has no prompt sections"])
        return [
            GenerationStage(
                key=section.section_key,
                title=section.section_key.replace("_", " ").title(),
                prompt_builder=SectionPrompt(section, description),
                temperature=section.temperature,
            )
            for section in template.prompts
        ]

    async def expand(
        self, template: ProjectTemplate, description: str, model_id: str
    ) -> DeliverableBundle:
        """Run every section of ``template`` for ``description`` on ``model_id``.

        Raises:
            ValidationError: Empty description, a template without sections,
                or an unknown model id.
        """
        if not description or not description.strip():
            raise ValidationError(["Project description is required"])
        stages = self.build_stages(template, description.strip())

        fallback = self.catalog.default_fallback_for(model_id) if model_id in self.catalog else None
        selection = self.validator.validate(
            PartialModelSelection(primary_model=model_id, fallback_model=fallback)
        )

        console.print(
            f"[bold]Template:[/bold] {escape(template.name)} "
            f"({len(stages)} section(s): {escape(', '.join(template.section_keys))})"
        )
        project = ProjectInput(description=description, name=template.name)
        return await self.pipeline.run(project, selection, stages)
