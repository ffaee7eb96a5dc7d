"""snipvault snippet commands — put, get, touch, recent, search, delete.

Usage:
  snipvault put notes.txt --source https://example.com/page
  echo "hello" | snipvault put -
  snipvault get 12
  snipvault recent
  snipvault search hello
  snipvault delete 12
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from snipvault.cli.errors import (
    describe,
    err_config,
    err_file_not_found,
    err_no_db,
    err_no_key,
)
from snipvault.config import ConfigError, load_config, load_encryption_key
from snipvault.db.connection import Database
from snipvault.db.models import SnippetSummary
from snipvault.db.schema import initialize
from snipvault.errors import SnipvaultError
from snipvault.service import SnippetService

console = Console()

_DEFAULT_DB = Path(".snipvault.db")
_PREVIEW_CHARS = 60

DbOption = Annotated[Path, typer.Option("--db", help="Path to the snippet database.")]
OwnerOption = Annotated[
    int, typer.Option("--owner", envvar="SNIPVAULT_OWNER", help="Owner id.")
]


@contextmanager
def _service(db: Path) -> Iterator[SnippetService]:
    """Open *db* and yield a wired service; map snipvault errors to exit 1."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)
    try:
        cfg = load_config(project_dir=db.resolve().parent)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    try:
        key = load_encryption_key()
    except ConfigError as exc:
        console.print(err_no_key())
        raise typer.Exit(1) from exc

    conn = Database(db).connect()
    try:
        initialize(conn)
        yield SnippetService.from_connection(conn, key, cfg)
    except SnipvaultError as exc:
        console.print(describe(exc))
        raise typer.Exit(1) from exc
    finally:
        conn.close()


def put_cmd(
    path: Annotated[str, typer.Argument(help="File to store, or '-' for stdin.")],
    source: Annotated[
        str | None, typer.Option("--source", "-s", help="Where the content came from.")
    ] = None,
    owner: OwnerOption = 1,
    db: DbOption = _DEFAULT_DB,
) -> None:
    """Store a file (or stdin) as a new snippet."""
    if path == "-":
        content = sys.stdin.buffer.read()
    elif Path(path).is_file():
        content = Path(path).read_bytes()
    else:
        console.print(err_file_not_found(path))
        raise typer.Exit(1)
    with _service(db) as service:
        summary = service.create_snippet(owner, content, source)
    console.print(
        f"[green]✓[/] Stored snippet [bold]{summary.id}[/] "
        f"({summary.total_size} bytes, {summary.total_chunks} chunk(s))"
    )


def get_cmd(
    snippet_id: Annotated[int, typer.Argument(help="Snippet id.")],
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write content to this file.")
    ] = None,
    owner: OwnerOption = 1,
    db: DbOption = _DEFAULT_DB,
) -> None:
    """Print a snippet's content (and mark it most recently used)."""
    with _service(db) as service:
        snippet = service.get_snippet(owner, snippet_id)
    if output is not None:
        output.write_bytes(snippet.content)
        console.print(f"[green]✓[/] Wrote {len(snippet.content)} bytes to {output}")
    else:
        sys.stdout.buffer.write(snippet.content)
        sys.stdout.buffer.flush()


def touch_cmd(
    snippet_id: Annotated[int, typer.Argument(help="Snippet id.")],
    owner: OwnerOption = 1,
    db: DbOption = _DEFAULT_DB,
) -> None:
    """Move a snippet to the front of the recent list."""
    with _service(db) as service:
        service.touch_snippet(owner, snippet_id)
    console.print(f"[green]✓[/] Snippet {snippet_id} moved to front")


def recent_cmd(
    owner: OwnerOption = 1,
    db: DbOption = _DEFAULT_DB,
) -> None:
    """List the most recently used snippets."""
    with _service(db) as service:
        summaries = service.list_recent(owner)
    if not summaries:
        console.print("[dim]No snippets yet.[/]  Run:  snipvault put <file>")
        return
    console.print(_summary_table(summaries, title="Recent snippets"))


def search_cmd(
    query: Annotated[str, typer.Argument(help="Case-insensitive substring to find.")],
    owner: OwnerOption = 1,
    db: DbOption = _DEFAULT_DB,
) -> None:
    """Find snippets containing QUERY."""
    with _service(db) as service:
        results = service.search(owner, query)
    if not results:
        console.print(f"[dim]No snippets match '{query}'.[/]")
        return
    console.print(
        _summary_table(
            [r.summary for r in results],
            title=f"Matches for '{query}'",
            previews=[_preview(r.text) for r in results],
        )
    )


def delete_cmd(
    snippet_id: Annotated[int, typer.Argument(help="Snippet id.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    owner: OwnerOption = 1,
    db: DbOption = _DEFAULT_DB,
) -> None:
    """Delete a snippet (soft delete)."""
    if not yes and not typer.confirm(f"Delete snippet {snippet_id}?", default=False):
        console.print("[dim]Cancelled.[/]")
        raise typer.Exit(0)
    with _service(db) as service:
        service.delete_snippet(owner, snippet_id)
    console.print(f"[green]✓[/] Deleted snippet {snippet_id}")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _summary_table(
    summaries: list[SnippetSummary],
    *,
    title: str,
    previews: list[str] | None = None,
) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Source")
    table.add_column("Created")
    if previews is not None:
        table.add_column("Preview")
    for i, s in enumerate(summaries):
        row = [
            str(s.id),
            str(s.total_size),
            str(s.total_chunks),
            s.source_ref or "",
            (s.created_at or "")[:19].replace("T", " "),
        ]
        if previews is not None:
            row.append(previews[i])
        table.add_row(*row)
    return table


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) <= _PREVIEW_CHARS:
        return flat
    return flat[: _PREVIEW_CHARS - 1] + "…"
