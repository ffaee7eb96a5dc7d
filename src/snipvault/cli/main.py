"""snipvault CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from snipvault.cli.init import init_cmd, keygen_cmd
from snipvault.cli.snippets import (
    delete_cmd,
    get_cmd,
    put_cmd,
    recent_cmd,
    search_cmd,
    touch_cmd,
)


def _installed_version() -> str:
    try:
        return importlib.metadata.version("snipvault")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"snipvault {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="snipvault",
    help=(
        "snipvault — encrypted, compressed snippet storage.\n\n"
        "  snipvault put <file>     Store a snippet.\n"
        "  snipvault recent         List most recently used snippets."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log pipeline detail to stderr."),
    ] = False,
) -> None:
    """snipvault — encrypted, compressed snippet storage."""
    if verbose:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", handlers=[handler])


app.command("init")(init_cmd)
app.command("keygen")(keygen_cmd)
app.command("put")(put_cmd)
app.command("get")(get_cmd)
app.command("touch")(touch_cmd)
app.command("recent")(recent_cmd)
app.command("search")(search_cmd)
app.command("delete")(delete_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed snipvault version."""
    typer.echo(f"snipvault {_installed_version()}")


if __name__ == "__main__":
    app()
