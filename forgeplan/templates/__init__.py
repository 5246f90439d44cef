"""Project templates: models, the template store and the expander."""

from forgeplan.templates.expander import SectionPrompt, TemplateExpander
from forgeplan.templates.models import (
    SECTION_ORDER,
    SECTION_TEMPERATURES,
    ProjectTemplate,
    TemplateCategory,
    TemplateSection,
)
from forgeplan.templates.store import (
    DEFAULT_TEMPLATES,
    TEMPLATE_CATEGORIES,
    InMemoryTemplateStore,
    TemplateStore,
)

__all__ = [
    "ProjectTemplate",
    "TemplateSection",
    "TemplateCategory",
    "SECTION_ORDER",
    "SECTION_TEMPERATURES",
    "TemplateStore",
    "InMemoryTemplateStore",
    "DEFAULT_TEMPLATES",
    "TEMPLATE_CATEGORIES",
    "TemplateExpander",
    "SectionPrompt",
]
