"""Shared pytest fixtures for the forgeplan test suite.

Provides reusable fixtures for:
- The built-in model catalog and a validated selection
- A scripted invocation client that never touches the network
- Dispatchers and pipelines with zero backoff
- Sample project inputs and templates
- A fully wired ``GenerationEngine`` on top of the scripted client
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import pytest

from forgeplan.catalog.models import ModelSelection, TuningParams
from forgeplan.catalog.registry import ModelCatalog
from forgeplan.catalog.validator import SelectionValidator
from forgeplan.config import Config, RetryConfig
from forgeplan.dispatch.fallback import FallbackDispatcher
from forgeplan.engine import GenerationEngine
from forgeplan.errors import ErrorKind, InvocationError
from forgeplan.invocation.client import InvocationResponse
from forgeplan.pipeline.models import ProjectInput
from forgeplan.pipeline.orchestrator import StagePipeline
from forgeplan.templates.models import ProjectTemplate

# A scripted outcome: generated text, an error kind to raise, or any exception.
Outcome = Union[str, ErrorKind, Exception]


# ---------------------------------------------------------------------------
# Scripted invocation client
# ---------------------------------------------------------------------------


@dataclass
class RecordedCall:
    model_id: str
    prompt: str
    params: TuningParams
    system_prompt: Optional[str]


class ScriptedClient:
    """Stand-in for ``ModelInvocationClient``.

    ``script`` maps a model id to a queue of outcomes consumed one per call.
    When a model's queue is empty, ``default(model_id, prompt)`` decides the
    outcome; without a default the call succeeds with ``"<model_id> output"``.
    """

    def __init__(
        self,
        script: Optional[dict[str, list[Outcome]]] = None,
        default: Optional[Callable[[str, str], Outcome]] = None,
        delay: float = 0.0,
    ) -> None:
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.default = default
        self.delay = delay
        self.calls: list[RecordedCall] = []

    async def invoke(
        self,
        model_id: str,
        prompt: str,
        params: TuningParams,
        *,
        system_prompt: Optional[str] = None,
    ) -> InvocationResponse:
        self.calls.append(RecordedCall(model_id, prompt, params, system_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)

        queue = self.script.get(model_id)
        if queue:
            outcome = queue.pop(0)
        elif self.default is not None:
            outcome = self.default(model_id, prompt)
        else:
            outcome = f"{model_id} output"

        if isinstance(outcome, ErrorKind):
            raise InvocationError(outcome, model_id, f"scripted {outcome.value}")
        if isinstance(outcome, Exception):
            raise outcome
        return InvocationResponse(text=outcome, model=model_id)

    def models_called(self) -> list[str]:
        return [call.model_id for call in self.calls]


@pytest.fixture
def make_client() -> Callable[..., ScriptedClient]:
    """Factory for ``ScriptedClient`` instances."""
    return ScriptedClient


@pytest.fixture
def scripted_client() -> ScriptedClient:
    """A client on which every call succeeds."""
    return ScriptedClient()


# ---------------------------------------------------------------------------
# Catalog & selection
# ---------------------------------------------------------------------------


@pytest.fixture
def catalog() -> ModelCatalog:
    return ModelCatalog()


@pytest.fixture
def validator(catalog: ModelCatalog) -> SelectionValidator:
    return SelectionValidator(catalog)


@pytest.fixture
def selection(validator: SelectionValidator) -> ModelSelection:
    """gpt-4-turbo with claude-3-sonnet as fallback."""
    return validator.validate(
        {"primary_model": "gpt-4-turbo", "fallback_model": "claude-3-sonnet"}
    )


@pytest.fixture
def solo_selection(validator: SelectionValidator) -> ModelSelection:
    """gpt-4-turbo without a fallback."""
    return validator.validate({"primary_model": "gpt-4-turbo"})


# ---------------------------------------------------------------------------
# Dispatch & pipeline
# ---------------------------------------------------------------------------


@pytest.fixture
def fast_retry() -> RetryConfig:
    """Two retries per model, no sleeping between them."""
    return RetryConfig(max_retries=2, backoff_base=0.0)


@pytest.fixture
def make_pipeline(fast_retry: RetryConfig) -> Callable[..., StagePipeline]:
    """Build a ``StagePipeline`` on top of a given client."""

    def _make(client: Any, max_concurrency: int = 1) -> StagePipeline:
        return StagePipeline(FallbackDispatcher(client, retry=fast_retry), max_concurrency)

    return _make


# ---------------------------------------------------------------------------
# Sample inputs
# ---------------------------------------------------------------------------


@pytest.fixture
def project_input() -> ProjectInput:
    return ProjectInput(
        description="A marketplace where local artists sell prints",
        name="Artisan Market",
        tech_stack=("Next.js", "PostgreSQL"),
        features=("Artist profiles", "Checkout"),
        audience="Independent artists",
    )


@pytest.fixture
def sample_template() -> ProjectTemplate:
    """A three-section template."""
    return ProjectTemplate(
        id="mini-api",
        name="Mini API",
        description="Small REST API",
        category="api",
        prompts={
            "plan": "Plan a small REST API.",
            "backend": "Implement the API for: {{ description }}",
            "documentation": "Document the API.",
        },
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@pytest.fixture
def fast_config(fast_retry: RetryConfig) -> Config:
    return Config(retry=fast_retry)


@pytest.fixture
def make_engine(fast_config: Config) -> Callable[..., GenerationEngine]:
    """Build a ``GenerationEngine`` whose model calls go to a scripted client."""

    def _make(client: Optional[ScriptedClient] = None, **kwargs: Any) -> GenerationEngine:
        return GenerationEngine(fast_config, client=client or ScriptedClient(), **kwargs)

    return _make
