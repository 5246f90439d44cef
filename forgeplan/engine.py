"""Public entry points of the generation engine.

``GenerationEngine`` wires the catalog, invocation client, dispatcher,
stage pipeline, template store and expander together from a ``Config``
and exposes the generation operations:

- ``generate_project``: the fixed six-stage run for a project idea.
- ``generate_from_template``: one stage per section of a stored template.
- ``generate_documentation``: documentation sections for a finished project.
- ``run_code_task``: one code, docs, tests or review stage.

Only ``ValidationError`` and ``NotFoundError`` are raised; provider
failures end up as failed stages inside the returned bundle.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from forgeplan.catalog.models import AIModel, Provider
from forgeplan.catalog.registry import ModelCatalog
from forgeplan.catalog.validator import SelectionLike, SelectionValidator
from forgeplan.config import Config
from forgeplan.dispatch.fallback import FallbackDispatcher
from forgeplan.errors import ValidationError
from forgeplan.invocation.client import ModelInvocationClient
from forgeplan.invocation.transports import ProviderTransport, build_transports
from forgeplan.pipeline.models import DeliverableBundle, ProjectInput
from forgeplan.pipeline.orchestrator import StagePipeline
from forgeplan.pipeline.stages import default_stages
from forgeplan.tasks.code import CodeTaskKind, code_task_stage
from forgeplan.tasks.documentation import (
    DocumentationOptions,
    DocumentationSource,
    documentation_stages,
)
from forgeplan.templates.expander import TemplateExpander
from forgeplan.templates.models import ProjectTemplate
from forgeplan.templates.store import InMemoryTemplateStore, TemplateStore

ProjectLike = Union[ProjectInput, Mapping[str, Any], str]


def _coerce_project(project: ProjectLike) -> ProjectInput:
    """Accept a ``ProjectInput``, a plain mapping, or a bare description."""
    if isinstance(project, ProjectInput):
        return project
    data = {"description": project} if isinstance(project, str) else dict(project)
    try:
        return ProjectInput.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError([_pydantic_message(err) for err in exc.errors()]) from exc


def _pydantic_message(err: Mapping[str, Any]) -> str:
    msg = str(err["msg"])
    # Custom validators surface as "Value error, <message>".
    if msg.startswith("Value error, "):
        return msg[len("Value error, "):]
    loc = ".".join(str(p) for p in err["loc"])
    return f"{loc}: {msg}" if loc else msg


class GenerationEngine:
    """Facade over the full generation stack.

    Attributes:
        config: Engine configuration.
        catalog: The model catalog.
        validator: Selection validator bound to ``catalog``.
        client: Model invocation client.
        dispatcher: Primary/fallback dispatcher.
        pipeline: Stage pipeline.
        template_store: Where templates are looked up.
        expander: Template expander bound to ``pipeline``.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        catalog: Optional[ModelCatalog] = None,
        client: Optional[ModelInvocationClient] = None,
        transports: Optional[Mapping[Provider, ProviderTransport]] = None,
        template_store: Optional[TemplateStore] = None,
    ) -> None:
        self.config = config or Config()
        self.catalog = catalog if catalog is not None else self._load_catalog(self.config)
        self.validator = SelectionValidator(self.catalog)

        if client is None:
            client = ModelInvocationClient(
                self.catalog,
                transports if transports is not None else build_transports(self.config),
                timeout=self.config.invocation.timeout,
                system_prompt=self.config.invocation.system_prompt,
            )
        self.client = client
        self.dispatcher = FallbackDispatcher(client, retry=self.config.retry)
        self.pipeline = StagePipeline(
            self.dispatcher, max_concurrency=self.config.max_concurrent_stages
        )
        self.template_store = (
            template_store if template_store is not None else self._load_templates(self.config)
        )
        self.expander = TemplateExpander(self.catalog, self.pipeline, validator=self.validator)

    @classmethod
    def from_config(cls, config: Config) -> "GenerationEngine":
        """Build an engine whose transports talk to the configured providers."""
        return cls(config)

    @staticmethod
    def _load_catalog(config: Config) -> ModelCatalog:
        if config.catalog_path is not None:
            return ModelCatalog.from_json(
                config.catalog_path, default_fallback=config.default_fallback_model
            )
        return ModelCatalog(default_fallback=config.default_fallback_model)

    @staticmethod
    def _load_templates(config: Config) -> TemplateStore:
        if config.templates_path is not None:
            return InMemoryTemplateStore.from_json(config.templates_path)
        return InMemoryTemplateStore()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_project(
        self,
        project: ProjectLike,
        selection: SelectionLike,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DeliverableBundle:
        """Run the six fixed stages for ``project`` with ``selection``.

        Raises:
            ValidationError: Blank description or an invalid selection.
                No model is called in that case.
        """
        project_input = _coerce_project(project)
        validated = self.validator.validate(selection)
        return await self.pipeline.run(
            project_input, validated, default_stages(), cancel_event=cancel_event
        )

    async def generate_from_template(
        self,
        template_id: str,
        description: str,
        model_id: Optional[str] = None,
    ) -> DeliverableBundle:
        """Run every section of template ``template_id`` for ``description``.

        ``model_id`` defaults to the configured default model; the fallback
        is chosen by the catalog.

        Raises:
            NotFoundError: Unknown template id.
            ValidationError: Blank description, unknown model, or a
                template without sections.
        """
        template = self.template_store.get_template(template_id)
        return await self.expander.expand(
            template, description, model_id or self.config.default_model
        )

    async def generate_documentation(
        self,
        source: Union[DocumentationSource, Mapping[str, Any]],
        selection: Optional[SelectionLike] = None,
        options: Optional[DocumentationOptions] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DeliverableBundle:
        """Generate the documentation sections selected in ``options``.

        ``source`` is usually built with ``DocumentationSource.from_bundle``
        from a finished ``generate_project`` run.  Render the returned bundle
        with ``render_documentation``.

        Raises:
            ValidationError: Blank description, an invalid selection, or no
                section selected.  No model is called in that case.
        """
        if not isinstance(source, DocumentationSource):
            try:
                source = DocumentationSource.model_validate(source)
            except PydanticValidationError as exc:
                raise ValidationError([_pydantic_message(err) for err in exc.errors()]) from exc
        stages = documentation_stages(source, options)
        validated = self.validator.validate(self._selection_or_default(selection))
        return await self.pipeline.run(
            source.to_project(), validated, stages, cancel_event=cancel_event
        )

    async def run_code_task(
        self,
        task: Union[CodeTaskKind, str],
        subject: str,
        language: str,
        *,
        framework: Optional[str] = None,
        selection: Optional[SelectionLike] = None,
    ) -> DeliverableBundle:
        """Run one code task as a single-stage pipeline.

        ``subject`` is a description for ``code`` and source code for
        ``docs``, ``tests`` and ``review``.  The result is under the task's
        key in the returned bundle.

        Raises:
            ValidationError: Unknown task, blank subject or language, or an
                invalid selection.
        """
        stage = code_task_stage(task, subject, language, framework)
        validated = self.validator.validate(self._selection_or_default(selection))
        project = ProjectInput(description=subject, tech_stack=(language.strip(),))
        return await self.pipeline.run(project, validated, [stage])

    def _selection_or_default(self, selection: Optional[SelectionLike]) -> SelectionLike:
        if selection is not None:
            return selection
        return {
            "primary_model": self.config.default_model,
            "fallback_model": self.config.default_fallback_model,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def estimate_cost(self, project: ProjectLike, selection: SelectionLike) -> float:
        """Rough USD cost of one ``generate_project`` run on the primary model."""
        project_input = _coerce_project(project)
        validated = self.validator.validate(selection)
        return sum(
            self.catalog.estimate_cost(
                stage.render(project_input), validated.primary_model, validated.max_tokens
            )
            for stage in default_stages()
        )

    def list_models(
        self, provider: Optional[str] = None, capability: Optional[str] = None
    ) -> list[AIModel]:
        models = self.catalog.filter_by_provider(provider) if provider else self.catalog.list()
        if capability:
            capable = {m.id for m in self.catalog.filter_by_capability(capability)}
            models = [m for m in models if m.id in capable]
        return models

    def list_templates(self, category: Optional[str] = None) -> list[ProjectTemplate]:
        return self.template_store.list_templates(category)
