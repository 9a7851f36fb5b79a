"""Smartpen bridge CLI."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import TypeAdapter
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from penbridge.config import settings
from penbridge.errors import RecognizerError
from penbridge.models import ChangeSet, OrphanAction, PageRef, Stroke, active_page_strokes
from penbridge.pipeline import (
    ActionExecutor,
    ReconcileContext,
    compute_changes_by_page,
    parse_recognition,
    reconcile_lines,
    summarize_changes,
)
from penbridge.storage import (
    SqlDocumentStore,
    close_db,
    create_session_factory,
    engine_from_settings,
    init_db,
)

app = typer.Typer(
    name="penbridge",
    help="Reconcile handwritten smartpen pages with knowledge-base blocks",
    add_completion=False,
)
console = Console()

_strokes_adapter = TypeAdapter(list[Stroke])


def load_strokes(path: Path) -> list[Stroke]:
    """Load a stroke collection from a JSON file (a list or ``{"strokes": [...]}``)."""
    data = json.loads(path.read_text())
    if isinstance(data, dict):
        data = data.get("strokes", [])
    return _strokes_adapter.validate_python(data)


def dump_strokes(path: Path, strokes: list[Stroke]) -> None:
    """Write a stroke collection back to JSON."""
    payload = {"strokes": [s.model_dump(mode="json") for s in strokes]}
    path.write_text(json.dumps(payload, indent=2))


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command("init-db")
def init_db_command() -> None:
    """Create database tables."""

    async def run() -> None:
        engine = engine_from_settings(settings)
        try:
            await init_db(engine)
        finally:
            await close_db(engine)

    asyncio.run(run())
    console.print("[bold green]Database initialized[/bold green]")


@app.command()
def reconcile(
    strokes_path: Path = typer.Argument(..., exists=True, help="Stroke collection JSON"),
    recognition_path: Path = typer.Argument(..., exists=True, help="Recognizer response JSON"),
    book: int = typer.Option(..., help="Book id"),
    page: int = typer.Option(..., help="Page number"),
    retire_orphans: bool = typer.Option(
        False, "--retire-orphans", help="Offer to delete orphaned blocks"
    ),
    write_back: bool = typer.Option(True, help="Save updated block links to the stroke file"),
) -> None:
    """Run one reconciliation pass for a page."""
    page_ref = PageRef(book=book, page=page)
    strokes = load_strokes(strokes_path)

    try:
        recognition = parse_recognition(json.loads(recognition_path.read_text()))
    except RecognizerError as e:
        console.print(f"[bold red]Unusable recognizer response:[/bold red] {e}")
        raise typer.Exit(code=1)

    if recognition.is_empty and active_page_strokes(strokes, page_ref):
        console.print(
            "[bold red]Recognizer returned no lines for a page with ink;[/bold red] "
            "leaving blocks untouched"
        )
        raise typer.Exit(code=1)

    console.print(f"[bold blue]Reconciling:[/bold blue] {page_ref.page_name}")
    console.print(f"[dim]{len(recognition.lines)} lines, {len(strokes)} strokes[/dim]")

    async def run():
        engine = engine_from_settings(settings)
        try:
            store = SqlDocumentStore(create_session_factory(engine))
            context = ReconcileContext.from_settings(page_ref, store, settings)
            result = await reconcile_lines(context, strokes, recognition.lines)

            _print_actions(result.actions)
            _print_report(result.report.summary(), result.report.errors)

            orphans = result.report.orphans
            if orphans and retire_orphans:
                _print_orphans(orphans)
                if typer.confirm(f"Delete {len(orphans)} orphaned block(s)?", default=False):
                    retired = await ActionExecutor(store).retire(page_ref, orphans, strokes)
                    console.print(f"[green]Retired {retired.retired} block(s)[/green]")
            elif orphans:
                _print_orphans(orphans)
                console.print("[yellow]Orphans kept; rerun with --retire-orphans to delete[/yellow]")
        finally:
            await close_db(engine)

    asyncio.run(run())

    if write_back:
        dump_strokes(strokes_path, strokes)


@app.command()
def changes(
    strokes_path: Path = typer.Argument(..., exists=True, help="Stroke collection JSON"),
) -> None:
    """Show net stroke changes per page against the persisted snapshot."""
    strokes = load_strokes(strokes_path)
    pages = list(dict.fromkeys(s.page for s in strokes))

    async def run() -> dict[PageRef, set[str]]:
        engine = engine_from_settings(settings)
        try:
            store = SqlDocumentStore(create_session_factory(engine))
            return {p: await store.list_stroke_ids(p) for p in pages}
        finally:
            await close_db(engine)

    persisted = asyncio.run(run())
    summary = summarize_changes(compute_changes_by_page(strokes, persisted))

    if not summary.changes:
        console.print("[green]No pending changes[/green]")
        return
    _print_changes(summary.changes)
    console.print(
        f"[bold]{summary.pages_with_changes}[/bold] page(s): "
        f"+{summary.total_additions} / -{summary.total_deletions} strokes"
    )


@app.command()
def blocks(
    book: int = typer.Option(..., help="Book id"),
    page: int = typer.Option(..., help="Page number"),
) -> None:
    """List persisted blocks for a page."""
    page_ref = PageRef(book=book, page=page)

    async def run():
        engine = engine_from_settings(settings)
        try:
            return await SqlDocumentStore(create_session_factory(engine)).list_blocks(page_ref)
        finally:
            await close_db(engine)

    found = asyncio.run(run())
    table = Table(title=page_ref.page_name)
    table.add_column("#", justify="right")
    table.add_column("UUID")
    table.add_column("Y range")
    table.add_column("Content")
    for block in found:
        table.add_row(
            str(block.seq),
            block.uuid,
            f"{block.interval.min_y:.1f}-{block.interval.max_y:.1f}",
            "  " * block.indent_level + block.content,
        )
    console.print(table)


def _print_actions(actions) -> None:
    table = Table(title="Actions")
    table.add_column("Action")
    table.add_column("Line", justify="right")
    table.add_column("Block")
    table.add_column("Text")
    for action in actions:
        line = getattr(action, "line", None)
        block = getattr(action, "block", None)
        table.add_row(
            action.kind.value.upper(),
            str(line.index) if line else "",
            block.uuid if block else "",
            line.text if line else (block.content if block else ""),
        )
    console.print(table)


def _print_report(summary: dict[str, int], errors: list[str]) -> None:
    console.print(
        " ".join(f"[bold]{k}[/bold]={v}" for k, v in summary.items())
    )
    for error in errors:
        console.print(f"[red]{error}[/red]")


def _print_orphans(orphans: list[OrphanAction]) -> None:
    table = Table(title="Orphaned blocks")
    table.add_column("UUID")
    table.add_column("Live strokes", justify="right")
    table.add_column("Content")
    for orphan in orphans:
        table.add_row(orphan.block.uuid, str(len(orphan.live_stroke_ids)), orphan.block.content)
    console.print(table)


def _print_changes(change_sets: list[ChangeSet]) -> None:
    table = Table(title="Pending changes")
    table.add_column("Page")
    table.add_column("Added", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Saved")
    for change in change_sets:
        table.add_row(
            change.page.key,
            str(len(change.additions)),
            str(len(change.deletions)),
            "yes" if change.is_saved else "no",
        )
    console.print(table)


if __name__ == "__main__":
    app()
