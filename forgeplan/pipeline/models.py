"""Pydantic v2 models for pipeline inputs and outputs.

``ProjectInput`` is what the caller describes; ``StageResult`` is the
outcome of one stage; ``DeliverableBundle`` is the ordered collection of
stage outcomes returned for one run.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from forgeplan.errors import ErrorKind


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class StageStatus(str, Enum):
    """Outcome of one stage."""
    OK = "ok"
    FAILED = "failed"


class OverallStatus(str, Enum):
    """Outcome of a whole run, derived from its required stages."""
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

class ProjectInput(BaseModel):
    """Caller-supplied project description plus optional structured fields."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    description: str = Field(..., description="Free-form description of the project idea")
    name: Optional[str] = Field(default=None, description="Project name")
    tech_stack: tuple[str, ...] = Field(default=(), description="Preferred technologies")
    features: tuple[str, ...] = Field(default=(), description="Features the project must have")
    audience: Optional[str] = Field(default=None, description="Target users")
    constraints: tuple[str, ...] = Field(default=(), description="Budget, compliance, hosting...")
    language: str = Field(default="English", description="Language the artifacts are written in")

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Project description is required")
        return value


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

class StageResult(BaseModel):
    """Outcome of one generation stage.  Produced exactly once per stage per run."""
    model_config = ConfigDict(frozen=True)

    stage_key: str
    status: StageStatus
    model_used: Optional[str] = Field(
        default=None, description="Model that answered, or the last one attempted on failure"
    )
    text: Optional[str] = None
    error: Optional[ErrorKind] = None
    error_message: str = ""
    attempts: int = Field(default=0, ge=0)
    duration_seconds: float = Field(default=0.0, ge=0)

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.OK


def compute_overall_status(
    results: Iterable[StageResult], required_keys: Iterable[str]
) -> OverallStatus:
    """Derive the run status from the required stages.

    ``failed`` when every required stage failed, ``completed`` when every
    required stage succeeded, ``partial`` otherwise.  With no required
    stages, all stages are judged instead.
    """
    results = list(results)
    required = set(required_keys)
    judged = [r for r in results if r.stage_key in required] or results

    if not judged or all(r.ok for r in judged):
        return OverallStatus.COMPLETED
    if not any(r.ok for r in judged):
        return OverallStatus.FAILED
    return OverallStatus.PARTIAL


class DeliverableBundle(BaseModel):
    """Ordered stage outcomes for one generation run.

    ``results`` preserves the declared stage order.  A bundle is never
    mutated after the pipeline returns it.
    """
    model_config = ConfigDict(frozen=True)

    results: dict[str, StageResult] = Field(default_factory=dict)
    model_used: str = Field(..., description="Model actually used for the run")
    overall_status: OverallStatus
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    project_name: Optional[str] = None
    duration_seconds: float = Field(default=0.0, ge=0)

    @property
    def stage_keys(self) -> list[str]:
        return list(self.results)

    def get(self, stage_key: str) -> Optional[StageResult]:
        return self.results.get(stage_key)

    def deliverables(self) -> dict[str, str]:
        """Text of every successful stage, keyed by stage key, in stage order."""
        return {k: r.text for k, r in self.results.items() if r.ok and r.text is not None}

    def failed_stages(self) -> list[str]:
        return [k for k, r in self.results.items() if not r.ok]

    def models_used(self) -> list[str]:
        """Distinct models that answered at least one stage, in first-use order."""
        seen: list[str] = []
        for result in self.results.values():
            if result.ok and result.model_used and result.model_used not in seen:
                seen.append(result.model_used)
        return seen

    def summary(self) -> str:
        """Return a human-readable summary of the bundle."""
        ok = len(self.results) - len(self.failed_stages())
        lines = [
            f"Status: {self.overall_status.value.upper()}",
            f"Model: {self.model_used}",
            f"Stages: {ok}/{len(self.results)} succeeded",
            f"Generated: {self.generated_at.isoformat()}",
        ]
        for key in self.failed_stages():
            result = self.results[key]
            kind = result.error.value if result.error else "unknown"
            lines.append(f"  - {key}: {kind}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return self.model_dump(mode="json")
