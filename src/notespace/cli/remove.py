"""notespace remove — source lifecycle management.

Removes a source and everything hanging off it:
  - chunks (with their embeddings)
  - citations pointing at those chunks

Usage:
  notespace remove <source-id>
  notespace remove <source-id> --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from notespace.cli.common import console, load_cli_config, open_existing_db, resolve_db_path
from notespace.cli.errors import err_source_not_found
from notespace.db.repository import Repository


def remove_cmd(
    source_id: Annotated[str, typer.Argument(help="Id of the source to remove.")],
    db: Annotated[Path | None, typer.Option("--db", help="Path to notespace.db.")] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a source and all its chunks from the knowledge base."""
    conn = open_existing_db(resolve_db_path(db, load_cli_config()))
    repo = Repository(conn)

    try:
        existing = repo.get_source(source_id)

        if existing is None:
            console.print(err_source_not_found(source_id))
            raise typer.Exit(0)

        chunk_count = repo.count_chunks_by_source(existing.id)

        console.print(f"\nRemove source: [bold]{existing.title}[/]  [dim]({existing.kind.value})[/]")
        console.print(f"  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        repo.delete_source(existing.id)

        console.print(f"\n[green]✓[/] Removed: {existing.title}")
        console.print(f"  {chunk_count} chunks deleted")

    finally:
        conn.close()
