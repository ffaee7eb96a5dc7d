"""snipvault init / keygen — database setup and key generation.

Creates:
  .snipvault.db              — empty snippet database with schema
  ~/.snipvault/config.yaml   — global config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from snipvault.config import ENCRYPTION_KEY_ENV, ensure_global_config, generate_key
from snipvault.db.connection import Database
from snipvault.db.schema import initialize

console = Console()

_DEFAULT_DB = Path(".snipvault.db")


def init_cmd(
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the snippet database."),
    ] = _DEFAULT_DB,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Create the snippet database and the global config file."""
    existed = db.exists()
    db.parent.mkdir(parents=True, exist_ok=True)
    conn = Database(db).connect()
    try:
        initialize(conn)
    finally:
        conn.close()

    if existed:
        console.print(f"  [green]✓[/] {db} (schema up to date, existing data preserved)")
    else:
        console.print(f"  [green]✓[/] {db}")

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\nNext steps:")
    console.print(f"  1. export {ENCRYPTION_KEY_ENV}=$(snipvault keygen)")
    console.print("  2. snipvault put <file>")


def keygen_cmd() -> None:
    """Print a new random 256-bit encryption key (hex)."""
    typer.echo(generate_key())
