"""Generation stage definitions and Jinja2 prompt rendering.

A ``GenerationStage`` pairs a bundle key with a prompt builder.  The fixed
six-stage sequence (product plan through DevOps configuration) is declared
here as data; template-driven runs build their own stage list from the same
types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from jinja2 import Environment

from forgeplan.pipeline.models import ProjectInput

PromptBuilder = Callable[[ProjectInput], str]


# ---------------------------------------------------------------------------
# Prompt rendering
# ---------------------------------------------------------------------------


class PromptRenderer:
    """Renders inline Jinja2 prompt templates.

    Templates receive ``project`` (the ``ProjectInput``) plus any extra
    context passed to ``render``.
    """

    def __init__(self) -> None:
        self.env = Environment(
            autoescape=False,
            keep_trailing_newline=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["bullets"] = _bullets_filter

    def render(self, template_string: str, context: dict[str, Any]) -> str:
        template = self.env.from_string(template_string)
        return template.render(**context).strip()


def _bullets_filter(items: Any) -> str:
    """Render an iterable as a markdown bullet list."""
    return "\n".join(f"- {item}" for item in items)


_renderer = PromptRenderer()


class TemplatePrompt:
    """Prompt builder backed by a Jinja2 template string."""

    def __init__(self, template: str, renderer: Optional[PromptRenderer] = None, **extra: Any) -> None:
        self.template = template
        self.renderer = renderer or _renderer
        self.extra = extra

    def __call__(self, project: ProjectInput) -> str:
        return self.renderer.render(self.template, {"project": project, **self.extra})

    def __repr__(self) -> str:
        return f"TemplatePrompt({self.template[:40]!r}...)"


# ---------------------------------------------------------------------------
# GenerationStage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenerationStage:
    """One discrete generation step producing one named artifact."""

    key: str
    prompt_builder: PromptBuilder
    required: bool = True
    title: str = ""
    temperature: Optional[float] = None
    system_prompt: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Stage key must not be empty")
        if self.temperature is not None and not 0 <= self.temperature <= 2:
            raise ValueError(f"Stage temperature must be between 0 and 2: {self.temperature}")

    def render(self, project: ProjectInput) -> str:
        return self.prompt_builder(project)


# ---------------------------------------------------------------------------
# Built-in six-stage sequence
# ---------------------------------------------------------------------------

_PROJECT_CONTEXT = """
Idea: "{{ project.description }}"
{% if project.name %}
Project name: {{ project.name }}
{% endif %}
{% if project.audience %}
Target audience: {{ project.audience }}
{% endif %}
{% if project.tech_stack %}
Preferred tech stack:
{{ project.tech_stack | bullets }}
{% endif %}
{% if project.features %}
Required features:
{{ project.features | bullets }}
{% endif %}
{% if project.constraints %}
Constraints:
{{ project.constraints | bullets }}
{% endif %}
"""

PRODUCT_PLAN_PROMPT = """
As an expert Product Architect, analyse the following idea and produce a complete product plan.
""" + _PROJECT_CONTEXT + """
Provide:
1. Product vision
2. Target personas
3. User journeys
4. Key KPIs
5. Epics and user stories (Gherkin format)
6. Risks and mitigation strategies

Respond in {{ project.language }} using structured markdown.
"""

TECHNICAL_ARCHITECTURE_PROMPT = """
As a Technical Architect, design the technical architecture for the following project.
""" + _PROJECT_CONTEXT + """
Provide:
1. Technical tree (folder structure)
2. API specifications (OpenAPI 3.1)
3. Docker configuration (docker-compose.yml, Dockerfile)
4. Terraform configuration (VPC, RDS, ECS, CloudFront)
5. Justified technology choices

Respond in {{ project.language }} using a structured format.
"""

WIREFRAMES_PROMPT = """
As a UX Designer, describe the wireframes for the following project.
""" + _PROJECT_CONTEXT + """
Provide detailed descriptions of the five main screens:
1. Landing page
2. Dashboard
3. Settings
4. Billing
5. Login / Register

For each screen describe:
- Main layout
- Key components
- User flow
- Interaction points

Respond in {{ project.language }}.
"""

DESIGN_SYSTEM_PROMPT = """
As a Visual Designer, create a design system for the following project.
""" + _PROJECT_CONTEXT + """
Provide:
1. Design tokens (colours, typography, spacing)
2. Core components (Button, Input, Modal, Table, ...)
3. Light and dark mode guidelines
4. Design principles

Respond in {{ project.language }} using a structured format.
"""

BACKEND_CODE_PROMPT = """
As a Backend Developer, generate the backend code structure for the following project.
""" + _PROJECT_CONTEXT + """
Provide:
1. Data models (database schema)
2. REST endpoints with descriptions
3. File structure
4. Base configuration
5. Key code examples

{% if project.tech_stack %}
Use the preferred tech stack listed above.
{% else %}
Use Next.js API routes, Prisma and PostgreSQL.
{% endif %}
Respond in {{ project.language }}.
"""

DEVOPS_CONFIG_PROMPT = """
As a DevOps Engineer, create the DevOps configuration for the following project.
""" + _PROJECT_CONTEXT + """
Provide:
1. GitHub Actions workflow (CI/CD)
2. Reusable Terraform modules
3. Configuration for three environments (dev, staging, prod)
4. Secrets management strategy
5. Monitoring and logging

Respond in {{ project.language }} with code examples.
"""

DEFAULT_STAGE_KEYS: tuple[str, ...] = (
    "product_plan",
    "technical_architecture",
    "wireframes",
    "design_system",
    "backend_code",
    "devops_config",
)


def default_stages() -> list[GenerationStage]:
    """The fixed six-stage sequence, in bundle order."""
    return [
        GenerationStage(
            key="product_plan",
            title="Product Plan",
            prompt_builder=TemplatePrompt(PRODUCT_PLAN_PROMPT),
        ),
        GenerationStage(
            key="technical_architecture",
            title="Technical Architecture",
            prompt_builder=TemplatePrompt(TECHNICAL_ARCHITECTURE_PROMPT),
        ),
        GenerationStage(
            key="wireframes",
            title="Wireframes",
            prompt_builder=TemplatePrompt(WIREFRAMES_PROMPT),
        ),
        GenerationStage(
            key="design_system",
            title="Design System",
            prompt_builder=TemplatePrompt(DESIGN_SYSTEM_PROMPT),
        ),
        GenerationStage(
            key="backend_code",
            title="Backend Scaffold",
            prompt_builder=TemplatePrompt(BACKEND_CODE_PROMPT),
        ),
        GenerationStage(
            key="devops_config",
            title="Deployment Configuration",
            prompt_builder=TemplatePrompt(DEVOPS_CONFIG_PROMPT),
        ),
    ]
