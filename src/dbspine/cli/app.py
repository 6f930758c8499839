"""
Root Typer application for the db-spine CLI.

Commands read their configuration from ``DBSPINE_*`` environment
variables (see :class:`~dbspine.core.settings.ConnectorSettings`).
"""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

from dbspine.connector.document import PROP_DISPLAY_URL, ROW_CHECKSUM, Document
from dbspine.connector.state import GlobalState, JsonFileStateStore
from dbspine.connector.traversal import CycleComplete, TraversalManager
from dbspine.core.errors import SpineError
from dbspine.core.hashing import canonical_key_string, generate_doc_id
from dbspine.core.logging import configure_from_settings
from dbspine.core.settings import get_settings

app = typer.Typer(
    name="dbspine",
    help="db-spine: incremental database-to-document traversal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        from dbspine import __version__

        typer.echo(f"db-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """db-spine CLI: crawl a database, inspect state, compute document ids."""


def _fail(error: SpineError) -> None:
    err_console.print(f"[bold red]{error.__class__.__name__}:[/bold red] {error.message}")
    context = error.context.to_dict()
    if context:
        err_console.print(f"[dim]{json.dumps(context, default=str)}[/dim]")
    raise typer.Exit(code=1)


def _doc_summary(doc: Document) -> dict[str, str | None]:
    return {
        "docid": doc.doc_id,
        "action": doc.action,
        "displayurl": doc.get_string(PROP_DISPLAY_URL),
        "checksum": doc.get_string(ROW_CHECKSUM),
    }


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("crawl")
def crawl(
    checkpoint: str | None = typer.Option(
        None,
        "--checkpoint",
        "-c",
        help=(
            "Resume from this checkpoint. State is saved only when a cycle completes, "
            "so a new run resumes from the last completed cycle, not from a mid-cycle checkpoint."
        ),
    ),
    batch_hint: int | None = typer.Option(None, "--batch-hint", "-b", help="Consumer batch size hint"),
    until_complete: bool = typer.Option(False, "--until-complete", help="Keep going until the cycle completes"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Start (or resume) a traversal and print the documents it produces.

    Progress is saved to the state file only when a cycle completes. A
    checkpoint printed mid-cycle moves the crawl forward only inside the
    same run, so use --until-complete to finish a cycle in one invocation.
    """
    settings = get_settings()
    configure_from_settings(settings)

    summaries: list[dict[str, str | None]] = []
    try:
        manager = TraversalManager.from_settings(settings)
        if batch_hint is not None:
            manager.batch_hint = batch_hint
        result = manager.resume_traversal(checkpoint) if checkpoint else manager.start_traversal()
        next_checkpoint = None
        while not isinstance(result, CycleComplete):
            summaries.extend(_doc_summary(doc) for doc in result)
            next_checkpoint = result.checkpoint()
            if not until_complete:
                break
            result = manager.resume_traversal(next_checkpoint)
    except SpineError as e:
        _fail(e)
        return

    complete = isinstance(result, CycleComplete)
    if json_out:
        payload = {
            "documents": summaries,
            "checkpoint": next_checkpoint,
            "cycle_complete": complete,
            "record_count": result.record_count if complete else None,
        }
        typer.echo(json.dumps(payload))
        return

    if summaries:
        table = Table(title="Documents")
        for column in ("docid", "action", "displayurl", "checksum"):
            table.add_column(column)
        for summary in summaries:
            table.add_row(*(summary[k] or "" for k in ("docid", "action", "displayurl", "checksum")))
        console.print(table)
    if next_checkpoint:
        console.print("Next checkpoint:", next_checkpoint, markup=False)
    if complete:
        console.print(f"[green]Crawl cycle complete:[/green] {result.record_count} records")


@app.command("state")
def show_state(
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Summarise the persisted traversal state."""
    settings = get_settings()
    store = JsonFileStateStore(settings.state_path)
    try:
        blob = store.load()
        if blob is None:
            console.print(f"[yellow]No saved state at {settings.state_path}[/yellow]")
            return
        state = GlobalState.from_dict(blob)
    except SpineError as e:
        _fail(e)
        return

    summary = {
        "path": str(settings.state_path),
        "cursor": state.cursor,
        "query_execution_time": blob.get("query_execution_time"),
        "record_count": state.record_count,
        "metadata_url_feed": state.metadata_url_feed,
        "queued": len(state.documents),
        "in_flight": state.documents.in_flight_count,
    }
    if json_out:
        typer.echo(json.dumps(summary))
        return
    table = Table(title="Traversal State")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in summary.items():
        table.add_row(key, str(value))
    console.print(table)


@app.command("docid")
def doc_id(
    values: list[str] = typer.Argument(..., help="Primary key values as KEY=VALUE, in key order"),
) -> None:
    """Print the document id for a set of primary key values."""
    row: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            err_console.print(f"[bold red]Expected KEY=VALUE, got:[/bold red] {item}")
            raise typer.Exit(code=1)
        row[key] = value
    keys = list(row)
    console.print(canonical_key_string(keys, row), style="dim", markup=False)
    typer.echo(generate_doc_id(keys, row))


if __name__ == "__main__":
    app()
