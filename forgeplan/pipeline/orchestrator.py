"""Stage pipeline: render, dispatch and assemble.

``StagePipeline.run`` drives an ordered list of ``GenerationStage`` objects
through the ``FallbackDispatcher`` and collects one ``StageResult`` per
stage into a ``DeliverableBundle``.  Every stage is always attempted; a
failed stage is recorded, never raised, and only influences the bundle's
``overall_status``.

Stages run one at a time by default, which keeps a run to a single
outbound call.  With ``max_concurrency > 1`` independent stages run behind
a semaphore, and results are still assembled in declared order.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

from rich.markup import escape

from forgeplan.catalog.models import ModelSelection
from forgeplan.dispatch.fallback import DispatchAttempt, DispatchResult, FallbackDispatcher
from forgeplan.errors import ErrorKind
from forgeplan.pipeline.models import (
    DeliverableBundle,
    ProjectInput,
    StageResult,
    StageStatus,
    compute_overall_status,
)
from forgeplan.pipeline.stages import GenerationStage, default_stages
from forgeplan.utils import console, format_duration, print_stage_table, status_markup


class StagePipeline:
    """Runs stage lists against a validated ``ModelSelection``.

    The pipeline holds no per-run state; one instance can serve concurrent
    runs.

    Attributes:
        dispatcher: Primary/fallback dispatcher used for every stage.
        max_concurrency: Maximum stages in flight within one run.
    """

    def __init__(self, dispatcher: FallbackDispatcher, max_concurrency: int = 1) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.dispatcher = dispatcher
        self.max_concurrency = max_concurrency

    async def run(
        self,
        project: ProjectInput,
        selection: ModelSelection,
        stages: Optional[Iterable[GenerationStage]] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DeliverableBundle:
        """Execute ``stages`` (the fixed six by default) and return the bundle.

        Args:
            project: The project description and structured fields.
            selection: A validated model selection.
            stages: Ordered stage list; keys must be unique.
            cancel_event: When set, the in-flight stage is aborted and every
                stage not yet finished is recorded as ``failed{timeout}``.

        Returns:
            A new ``DeliverableBundle`` with one result per stage.
        """
        stage_list = list(stages) if stages is not None else default_stages()
        keys = [stage.key for stage in stage_list]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ValueError(f"Duplicate stage keys: {', '.join(duplicates)}")

        run_start = time.monotonic()
        console.print(
            f"[bold cyan]Generating {len(stage_list)} stage(s)[/bold cyan] "
            f"with {escape(' -> '.join(selection.models))}"
        )

        if self.max_concurrency == 1:
            results: list[StageResult] = []
            for index, stage in enumerate(stage_list, start=1):
                results.append(
                    await self._run_stage(stage, index, len(stage_list), project, selection, cancel_event)
                )
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def _bounded(index: int, stage: GenerationStage) -> StageResult:
                async with semaphore:
                    return await self._run_stage(
                        stage, index, len(stage_list), project, selection, cancel_event
                    )

            results = list(
                await asyncio.gather(
                    *(_bounded(i, s) for i, s in enumerate(stage_list, start=1))
                )
            )

        bundle = DeliverableBundle(
            results={r.stage_key: r for r in results},
            model_used=_model_used_for_run(results, selection),
            overall_status=compute_overall_status(
                results, [s.key for s in stage_list if s.required]
            ),
            generated_at=datetime.now(timezone.utc),
            project_name=project.name,
            duration_seconds=time.monotonic() - run_start,
        )
        self._display_bundle(bundle)
        return bundle

    # ------------------------------------------------------------------
    # Single stage
    # ------------------------------------------------------------------

    async def _run_stage(
        self,
        stage: GenerationStage,
        index: int,
        total: int,
        project: ProjectInput,
        selection: ModelSelection,
        cancel_event: Optional[asyncio.Event],
    ) -> StageResult:
        if cancel_event is not None and cancel_event.is_set():
            return _cancelled(stage.key, None, "Run cancelled before the stage started")

        console.print(f"\n[cyan]Stage {index}/{total}: {escape(stage.title or stage.key)}[/cyan]")
        stage_start = time.monotonic()

        try:
            prompt = stage.render(project)
        except Exception as exc:  # noqa: BLE001
            console.print(f"  [red]Prompt rendering failed:[/red] {escape(str(exc))}")
            return StageResult(
                stage_key=stage.key,
                status=StageStatus.FAILED,
                error=ErrorKind.INVALID_RESPONSE,
                error_message=f"Prompt rendering failed: {exc}",
            )

        started: list[DispatchAttempt] = []
        dispatch = asyncio.ensure_future(
            self.dispatcher.run(
                selection,
                prompt,
                system_prompt=stage.system_prompt,
                temperature=stage.temperature,
                label=stage.key,
                on_attempt=started.append,
            )
        )

        if cancel_event is None:
            outcome = await dispatch
        else:
            waiter = asyncio.ensure_future(cancel_event.wait())
            try:
                await asyncio.wait({dispatch, waiter}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                waiter.cancel()
                if not dispatch.done():
                    dispatch.cancel()
                await asyncio.gather(dispatch, waiter, return_exceptions=True)
            if dispatch.cancelled():
                console.print(f"  [yellow]{escape(stage.key)} aborted: run cancelled[/yellow]")
                # The model in flight is whichever attempt started last.
                return _cancelled(
                    stage.key,
                    started[-1].model_id if started else None,
                    "Run cancelled while the stage was in flight",
                    attempts=len(started),
                    duration=time.monotonic() - stage_start,
                )
            outcome = dispatch.result()

        duration = time.monotonic() - stage_start

        if isinstance(outcome, DispatchResult):
            console.print(
                f"  [green]{escape(stage.key)} done[/green] via {escape(outcome.model_used)} "
                f"({format_duration(duration)})"
            )
            return StageResult(
                stage_key=stage.key,
                status=StageStatus.OK,
                model_used=outcome.model_used,
                text=outcome.text,
                attempts=outcome.attempts,
                duration_seconds=duration,
            )

        console.print(
            f"  [red]{escape(stage.key)} failed[/red] after {outcome.attempts} attempt(s) "
            f"({outcome.last_error.value})"
        )
        return StageResult(
            stage_key=stage.key,
            status=StageStatus.FAILED,
            model_used=outcome.last_model or None,
            error=outcome.last_error,
            error_message=outcome.message,
            attempts=outcome.attempts,
            duration_seconds=duration,
        )

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _display_bundle(self, bundle: DeliverableBundle) -> None:
        rows = [
            (
                escape(key),
                status_markup(result.status.value, "" if result.ok else _error_label(result)),
                escape(result.model_used or "-"),
                str(result.attempts),
                format_duration(result.duration_seconds),
            )
            for key, result in bundle.results.items()
        ]
        caption = (
            f"{status_markup(bundle.overall_status.value)} "
            f"in {format_duration(bundle.duration_seconds)}"
        )
        print_stage_table(rows, caption=caption)


def _error_label(result: StageResult) -> str:
    return result.error.value if result.error else "unknown"


def _cancelled(
    stage_key: str,
    model_id: Optional[str],
    message: str,
    attempts: int = 0,
    duration: float = 0.0,
) -> StageResult:
    return StageResult(
        stage_key=stage_key,
        status=StageStatus.FAILED,
        model_used=model_id,
        error=ErrorKind.TIMEOUT,
        error_message=message,
        attempts=attempts,
        duration_seconds=duration,
    )


def _model_used_for_run(results: list[StageResult], selection: ModelSelection) -> str:
    """Primary if it answered anything, else the fallback if it did, else the primary."""
    answered = {r.model_used for r in results if r.ok}
    if selection.primary_model in answered:
        return selection.primary_model
    if selection.fallback_model and selection.fallback_model in answered:
        return selection.fallback_model
    return selection.primary_model
