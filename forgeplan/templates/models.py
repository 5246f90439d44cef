"""Pydantic v2 models for project templates."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Canonical section order and the sampling temperature each section was
# tuned for.  Lower values for code-heavy sections.
SECTION_ORDER: tuple[str, ...] = (
    "plan",
    "architecture",
    "wireframes",
    "design",
    "backend",
    "devops",
    "documentation",
)

SECTION_TEMPERATURES: dict[str, float] = {
    "plan": 0.7,
    "architecture": 0.5,
    "wireframes": 0.6,
    "design": 0.7,
    "backend": 0.3,
    "devops": 0.4,
    "documentation": 0.3,
}


class TemplateSection(BaseModel):
    """One prompt section of a template, producing one bundle entry."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    section_key: str = Field(..., min_length=1)
    prompt_template: str = Field(..., min_length=1)
    temperature: Optional[float] = Field(default=None, ge=0, le=2)


class TemplateCategory(BaseModel):
    """Grouping used to browse templates."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    templates: tuple[str, ...] = ()


class ProjectTemplate(BaseModel):
    """A stored project template.

    ``prompts`` is an ordered list of sections.  A mapping of
    ``section_key -> prompt`` is also accepted; it is ordered by
    ``SECTION_ORDER`` and given the default section temperatures.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    category: str = ""
    structure: dict[str, Any] = Field(default_factory=dict)
    dependencies: dict[str, str] = Field(default_factory=dict)
    config: dict[str, str] = Field(default_factory=dict)
    prompts: tuple[TemplateSection, ...] = ()
    recommended_models: tuple[str, ...] = ()
    is_public: bool = True

    @field_validator("prompts", mode="before")
    @classmethod
    def _prompts_from_mapping(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        ordered = [k for k in SECTION_ORDER if k in value]
        ordered += [k for k in value if k not in SECTION_ORDER]
        return [
            {
                "section_key": key,
                "prompt_template": value[key],
                "temperature": SECTION_TEMPERATURES.get(key),
            }
            for key in ordered
            if value[key]
        ]

    @field_validator("prompts")
    @classmethod
    def _unique_section_keys(cls, value: tuple[TemplateSection, ...]) -> tuple[TemplateSection, ...]:
        keys = [section.section_key for section in value]
        if len(keys) != len(set(keys)):
            raise ValueError(f"Duplicate section keys in template prompts: {keys}")
        return value

    @property
    def section_keys(self) -> list[str]:
        return [section.section_key for section in self.prompts]
