"""Project documentation as a second stage sequence.

Documentation is generated after a project run, from what that run
produced.  Each selected section becomes one ``GenerationStage`` and the
whole set goes through the ordinary ``StagePipeline``, so it gets the same
retry, fallback and bundle semantics as ``generate_project``:

- ``overview`` (temperature 0.5)
- ``api_docs`` (0.3), only when backend code is available
- ``setup_guide`` (0.4)
- ``usage_examples`` (0.6)

``render_documentation`` turns the resulting bundle into one markdown,
JSON or HTML document.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional

from jinja2 import Environment
from pydantic import BaseModel, ConfigDict, Field, field_validator

from forgeplan.errors import ValidationError
from forgeplan.pipeline.models import DeliverableBundle, ProjectInput
from forgeplan.pipeline.stages import GenerationStage, TemplatePrompt

# Bundle keys that hold backend code: the six-stage run and templates.
BACKEND_KEYS: tuple[str, ...] = ("backend_code", "backend")

SECTION_TITLES: dict[str, str] = {
    "overview": "Project Overview",
    "api_docs": "API Documentation",
    "setup_guide": "Setup Guide",
    "usage_examples": "Usage Examples",
}

SECTION_SEPARATOR = "\n\n---\n\n"


class DocFormat(str, Enum):
    MARKDOWN = "markdown"
    HTML = "html"
    JSON = "json"


class DocumentationOptions(BaseModel):
    """Which documentation sections to generate and how to render them."""
    model_config = ConfigDict(frozen=True)

    include_overview: bool = True
    include_api_docs: bool = True
    include_setup_guide: bool = True
    include_examples: bool = True
    format: DocFormat = DocFormat.MARKDOWN


class DocumentationSource(BaseModel):
    """What the documentation is written about."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Project name")
    description: str = Field(..., description="Project description")
    tech_stack: tuple[str, ...] = ()
    structure: dict[str, Any] = Field(default_factory=dict, description="Project file tree")
    generated_content: dict[str, str] = Field(
        default_factory=dict, description="Stage key -> generated text"
    )

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Project description is required")
        return value

    @classmethod
    def from_bundle(
        cls, bundle: DeliverableBundle, project: ProjectInput, structure: Optional[dict[str, Any]] = None
    ) -> "DocumentationSource":
        """Describe a finished run: its project plus every successful deliverable."""
        return cls(
            name=project.name or bundle.project_name or "Untitled project",
            description=project.description,
            tech_stack=project.tech_stack,
            structure=structure or {},
            generated_content=bundle.deliverables(),
        )

    @property
    def backend_code(self) -> Optional[str]:
        for key in BACKEND_KEYS:
            if self.generated_content.get(key):
                return self.generated_content[key]
        return None

    def to_project(self) -> ProjectInput:
        return ProjectInput(description=self.description, name=self.name, tech_stack=self.tech_stack)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

OVERVIEW_PROMPT = """
Generate a comprehensive project overview for:
Project Name: {{ project.name }}
Description: {{ project.description }}
Tech Stack: {{ project.tech_stack | join(", ") or "not specified" }}

Please include:
1. Project purpose and goals
2. Key features and functionality
3. Architecture overview
4. Technology stack details
5. Prerequisites and requirements
"""

API_DOCS_PROMPT = """
Generate API documentation for this backend code:

{{ backend }}

Please include:
1. Endpoint descriptions
2. Request/response formats
3. Authentication methods
4. Error handling
5. Rate limiting
"""

SETUP_GUIDE_PROMPT = """
Generate a comprehensive setup guide for:
Project: {{ project.name }}
Tech Stack: {{ project.tech_stack | join(", ") or "not specified" }}
Structure: {{ structure }}

Please include:
1. Installation instructions
2. Configuration steps
3. Environment setup
4. Database setup
5. Running the application
"""

USAGE_EXAMPLES_PROMPT = """
Generate practical usage examples for:
Project: {{ project.name }}
Description: {{ project.description }}
Generated Content: {{ content_keys | join(", ") or "none" }}

Please include:
1. Basic usage examples
2. Advanced use cases
3. Common scenarios
4. Code snippets
5. Best practices
"""


def documentation_stages(
    source: DocumentationSource, options: Optional[DocumentationOptions] = None
) -> list[GenerationStage]:
    """Stage list for the selected sections, in document order.

    Raises:
        ValidationError: When no section would be generated.
    """
    options = options or DocumentationOptions()
    stages: list[GenerationStage] = []

    if options.include_overview:
        stages.append(_stage("overview", OVERVIEW_PROMPT, 0.5))
    backend = source.backend_code
    if options.include_api_docs and backend:
        stages.append(_stage("api_docs", API_DOCS_PROMPT, 0.3, backend=backend))
    if options.include_setup_guide:
        structure = json.dumps(source.structure, indent=2) if source.structure else "not specified"
        stages.append(_stage("setup_guide", SETUP_GUIDE_PROMPT, 0.4, structure=structure))
    if options.include_examples:
        stages.append(
            _stage(
                "usage_examples",
                USAGE_EXAMPLES_PROMPT,
                0.6,
                content_keys=list(source.generated_content),
            )
        )

    if not stages:
        raise ValidationError(["No documentation sections selected"])
    return stages


def _stage(key: str, prompt: str, temperature: float, **extra: Any) -> GenerationStage:
    return GenerationStage(
        key=key,
        title=SECTION_TITLES[key],
        prompt_builder=TemplatePrompt(prompt, **extra),
        temperature=temperature,
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

_HTML_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{{ title }}</title>
</head>
<body>
<h1>{{ title }}</h1>
<p>{{ description }}</p>
{% for heading, text in sections %}
<section>
<h2>{{ heading }}</h2>
<pre>{{ text }}</pre>
</section>
{% endfor %}
</body>
</html>
"""

# Section text is model output, so the HTML page escapes everything.
_html_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)


def render_documentation(
    bundle: DeliverableBundle,
    source: DocumentationSource,
    format: DocFormat | str = DocFormat.MARKDOWN,
) -> str:
    """Join the successful sections of a documentation bundle into one document.

    Failed sections are left out; their keys are still listed in
    ``bundle.failed_stages()``.
    """
    fmt = DocFormat(format)
    sections = [
        (SECTION_TITLES.get(key, key.replace("_", " ").title()), text)
        for key, text in bundle.deliverables().items()
    ]

    if fmt is DocFormat.JSON:
        return json.dumps(
            {
                "title": source.name,
                "description": source.description,
                "sections": [f"# {heading}\n\n{text}" for heading, text in sections],
                "generated_at": bundle.generated_at.isoformat(),
            },
            indent=2,
            ensure_ascii=False,
        )
    if fmt is DocFormat.HTML:
        return _html_env.from_string(_HTML_PAGE).render(
            title=source.name, description=source.description, sections=sections
        )
    return SECTION_SEPARATOR.join(f"# {heading}\n\n{text}" for heading, text in sections)
