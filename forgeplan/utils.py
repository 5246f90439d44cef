"""Shared console and formatting helpers.

All human-facing progress output goes through the module-level Rich
``console`` so the CLI and library callers share one sink.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()

# Colours for stage and run statuses ("ok", "completed", "partial", "failed").
STATUS_STYLES: dict[str, str] = {
    "ok": "green",
    "completed": "green",
    "partial": "yellow",
    "failed": "red",
}


# ---------------------------------------------------------------------------
# String helpers
# ---------------------------------------------------------------------------


def slugify(name: str) -> str:
    """Turn a template or project name into a lowercase, hyphenated id.

    Examples::

        slugify("React + Next.js Web App") -> "react-next-js-web-app"
        slugify("  REST API Service  ") -> "rest-api-service"
    """
    return re.sub(r"[^a-z0-9_]+", "-", name.lower()).strip("-")


def truncate(text: str, limit: int = 200) -> str:
    """Shorten ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)] + "..."


# ---------------------------------------------------------------------------
# JSON I/O
# ---------------------------------------------------------------------------


def load_json(path: str | Path) -> Any:
    """Parse a catalog, template or config file.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _write_atomic(path: Path, content: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


async def save_text(content: str, path: str | Path) -> Path:
    """Write ``content`` to ``path``.

    Parent directories are created.  The file is written to a temporary
    sibling and moved into place, so readers never see a half-written
    file.  The write runs off the event loop.

    Returns:
        The path written.
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread(_write_atomic, file_path, content)
    return file_path


async def save_json(data: dict[str, Any] | list[Any], path: str | Path) -> Path:
    """Write ``data`` (typically a bundle's ``to_dict()``) as indented JSON."""
    content = json.dumps(data, indent=2, ensure_ascii=False, default=str) + "\n"
    return await save_text(content, path)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a stage or run duration.

    Examples::

        format_duration(0.25)   -> "250ms"
        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 05s"
        format_duration(3661.0) -> "1h 01m"
    """
    seconds = max(seconds, 0.0)
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


def format_cost(amount: float) -> str:
    """Format a USD amount with enough precision for sub-cent estimates."""
    if amount < 0.01:
        return f"${amount:.4f}"
    return f"${amount:.2f}"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def status_markup(status: str, detail: str = "") -> str:
    """Rich markup for a stage or run status, e.g. ``[red]FAILED[/red] (timeout)``."""
    style = STATUS_STYLES.get(status, "white")
    markup = f"[{style}]{escape(status.upper())}[/{style}]"
    return f"{markup} ({escape(detail)})" if detail else markup


def print_status(status: str, message: str) -> None:
    """Print a one-line message coloured by run status."""
    style = STATUS_STYLES.get(status, "white")
    console.print(f"[bold {style}]{escape(message)}[/bold {style}]")


def print_stage_table(
    rows: Iterable[Sequence[str]],
    title: str = "Generation Summary",
    caption: Optional[str] = None,
) -> None:
    """Print one row per stage: key, status markup, model, attempts, time."""
    table = Table(title=title, caption=caption, show_header=True, header_style="bold cyan")
    table.add_column("Stage", no_wrap=True)
    table.add_column("Status")
    table.add_column("Model", style="dim")
    table.add_column("Attempts", justify="right")
    table.add_column("Time", justify="right")

    for row in rows:
        table.add_row(*row)

    console.print(table)
