"""Command-line interface: ``python -m forgeplan``."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError as PydanticValidationError
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from forgeplan.catalog.models import Provider
from forgeplan.config import Config
from forgeplan.engine import GenerationEngine
from forgeplan.errors import ForgeplanError, NotFoundError, ValidationError
from forgeplan.pipeline.models import DeliverableBundle, OverallStatus, ProjectInput
from forgeplan.tasks.code import CodeTaskKind
from forgeplan.tasks.documentation import (
    DocFormat,
    DocumentationOptions,
    DocumentationSource,
    render_documentation,
)
from forgeplan.utils import console, format_cost, load_json, print_status, save_json, save_text


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forgeplan",
        description="forgeplan -- generate project deliverables with AI models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            '  python -m forgeplan generate "A marketplace for local artists"\n'
            '  python -m forgeplan generate "Todo app" --primary gpt-4o -o bundle.json\n'
            '  python -m forgeplan template rest-api-service "Inventory API" --model claude-3-opus\n'
            "  python -m forgeplan models --provider anthropic\n"
            "  python -m forgeplan templates --category web-app\n"
            '  python -m forgeplan docs bundle.json "Todo app" --format html -o docs.html\n'
            "  python -m forgeplan task review app.py --language python\n"
        ),
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to a JSON config file (default: read FORGEPLAN_* environment variables)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Run the six-stage generation for a project idea")
    gen.add_argument("description", help="Free-form project description")
    gen.add_argument("--name", default=None, help="Project name")
    gen.add_argument("--primary", default=None, help="Primary model id (default: config default)")
    gen.add_argument("--fallback", default=None, help="Fallback model id (default: config default)")
    gen.add_argument("--temperature", type=float, default=None, help="Sampling temperature (0-2)")
    gen.add_argument("--max-tokens", type=int, default=None, help="Maximum output tokens")
    gen.add_argument("--estimate", action="store_true", help="Only print the estimated cost")
    gen.add_argument("--output", "-o", default=None, help="Write the bundle as JSON to this path")

    tpl = sub.add_parser("template", help="Generate from a stored project template")
    tpl.add_argument("template_id", help="Template id (see `templates`)")
    tpl.add_argument("description", help="Free-form project description")
    tpl.add_argument("--model", default=None, help="Model id (default: config default)")
    tpl.add_argument("--output", "-o", default=None, help="Write the bundle as JSON to this path")

    models = sub.add_parser("models", help="List catalog models")
    models.add_argument("--provider", choices=[p.value for p in Provider], default=None)
    models.add_argument("--capability", default=None, help="e.g. code-generation, vision")

    templates = sub.add_parser("templates", help="List project templates")
    templates.add_argument("--category", default=None, help="e.g. web-app, api, mobile-app")

    docs = sub.add_parser("docs", help="Generate documentation for a saved bundle")
    docs.add_argument("bundle", help="Bundle JSON written by `generate -o`")
    docs.add_argument("description", help="Project description the bundle was generated for")
    docs.add_argument("--name", default=None, help="Project name (default: the bundle's)")
    docs.add_argument(
        "--format", choices=[f.value for f in DocFormat], default=DocFormat.MARKDOWN.value
    )
    docs.add_argument("--no-overview", action="store_true", help="Skip the project overview")
    docs.add_argument("--no-api-docs", action="store_true", help="Skip the API documentation")
    docs.add_argument("--no-setup-guide", action="store_true", help="Skip the setup guide")
    docs.add_argument("--no-examples", action="store_true", help="Skip the usage examples")
    docs.add_argument("--output", "-o", default=None, help="Write the document to this path")

    task = sub.add_parser("task", help="Generate, document, test or review code")
    task.add_argument("kind", choices=[k.value for k in CodeTaskKind])
    task.add_argument("subject", help="Description, source code, or a path to a source file")
    task.add_argument("--language", "-l", required=True, help="Programming language")
    task.add_argument("--framework", default=None, help="Test framework for `tests` (default: jest)")
    task.add_argument("--model", default=None, help="Primary model id (default: config default)")

    return parser


def _load_config(path: Optional[str]) -> Config:
    if path is None:
        return Config.from_env()
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    return Config.load(config_path)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _print_models(engine: GenerationEngine, provider: Optional[str], capability: Optional[str]) -> int:
    table = Table(title="Models", show_header=True, header_style="bold cyan")
    table.add_column("ID", no_wrap=True)
    table.add_column("Provider")
    table.add_column("Context", justify="right")
    table.add_column("$/1k in", justify="right")
    table.add_column("$/1k out", justify="right")
    table.add_column("Capabilities")
    for model in engine.list_models(provider, capability):
        table.add_row(
            model.id,
            model.provider.value,
            f"{model.max_tokens:,}",
            f"{model.cost_per_1k_tokens.input:g}",
            f"{model.cost_per_1k_tokens.output:g}",
            ", ".join(sorted(model.capabilities)),
        )
    console.print(table)
    return 0


def _print_templates(engine: GenerationEngine, category: Optional[str]) -> int:
    table = Table(title="Templates", show_header=True, header_style="bold cyan")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Sections")
    for template in engine.list_templates(category):
        table.add_row(
            template.id,
            escape(template.name),
            template.category,
            ", ".join(template.section_keys),
        )
    console.print(table)
    return 0


async def _finish(bundle: DeliverableBundle, output: Optional[str]) -> int:
    if output:
        written = await save_json(bundle.to_dict(), output)
        console.print(f"Bundle written to [bold]{escape(str(written))}[/bold]")

    status = bundle.overall_status
    if status is OverallStatus.COMPLETED:
        print_status(status.value, "Generation completed successfully!")
        return 0
    if status is OverallStatus.PARTIAL:
        print_status(
            status.value,
            f"Generation partially completed. Failed: {', '.join(bundle.failed_stages())}",
        )
        return 0
    print_status(status.value, "Generation failed.")
    return 1


async def _generate(engine: GenerationEngine, args: argparse.Namespace) -> int:
    selection = {
        "primary_model": args.primary or engine.config.default_model,
        "fallback_model": args.fallback or engine.config.default_fallback_model,
        "temperature": args.temperature,
        "max_tokens": args.max_tokens,
    }
    project = {"description": args.description, "name": args.name}

    if args.estimate:
        cost = engine.estimate_cost(project, selection)
        console.print(
            Panel(
                f"Estimated cost on [bold]{escape(selection['primary_model'])}[/bold]: {format_cost(cost)}",
                title="Cost estimate",
                border_style="cyan",
            )
        )
        return 0

    bundle = await engine.generate_project(project, selection)
    return await _finish(bundle, args.output)


async def _template(engine: GenerationEngine, args: argparse.Namespace) -> int:
    bundle = await engine.generate_from_template(args.template_id, args.description, args.model)
    return await _finish(bundle, args.output)


async def _docs(engine: GenerationEngine, args: argparse.Namespace) -> int:
    project_bundle = DeliverableBundle.model_validate(load_json(args.bundle))
    project = ProjectInput(description=args.description, name=args.name or project_bundle.project_name)
    source = DocumentationSource.from_bundle(project_bundle, project)
    options = DocumentationOptions(
        include_overview=not args.no_overview,
        include_api_docs=not args.no_api_docs,
        include_setup_guide=not args.no_setup_guide,
        include_examples=not args.no_examples,
        format=args.format,
    )

    bundle = await engine.generate_documentation(source, options=options)
    document = render_documentation(bundle, source, options.format)
    if args.output:
        written = await save_text(document, args.output)
        console.print(f"Documentation written to [bold]{escape(str(written))}[/bold]")
    else:
        console.print(document, markup=False, highlight=False)
    return await _finish(bundle, None)


async def _task(engine: GenerationEngine, args: argparse.Namespace) -> int:
    subject = args.subject
    subject_path = Path(subject)
    if args.kind != CodeTaskKind.CODE.value and subject_path.is_file():
        subject = subject_path.read_text(encoding="utf-8")

    selection = None
    if args.model:
        selection = {
            "primary_model": args.model,
            "fallback_model": engine.config.default_fallback_model,
        }
    bundle = await engine.run_code_task(
        args.kind, subject, args.language, framework=args.framework, selection=selection
    )
    result = bundle.get(args.kind)
    if result is not None and result.ok:
        console.print(result.text, markup=False, highlight=False)
    return await _finish(bundle, None)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point.  Returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args.config)
        engine = GenerationEngine.from_config(config)

        if args.command == "models":
            return _print_models(engine, args.provider, args.capability)
        if args.command == "templates":
            return _print_templates(engine, args.category)
        if args.command == "generate":
            return asyncio.run(_generate(engine, args))
        if args.command == "docs":
            return asyncio.run(_docs(engine, args))
        if args.command == "task":
            return asyncio.run(_task(engine, args))
        return asyncio.run(_template(engine, args))
    except ValidationError as exc:
        console.print("[bold red]Error:[/bold red] invalid request")
        for reason in exc.reasons:
            console.print(f"  - {escape(reason)}")
        return 1
    except (NotFoundError, FileNotFoundError, json.JSONDecodeError, PydanticValidationError) as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        return 1
    except ForgeplanError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
