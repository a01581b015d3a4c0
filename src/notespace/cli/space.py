"""notespace space CLI commands.

Commands:
  notespace space create <name>   — create a space
  notespace space list            — show spaces with source counts
  notespace space delete <id>     — delete a space and everything in it
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from notespace.cli.common import console, load_cli_config, open_existing_db, resolve_db_path
from notespace.cli.errors import err_invalid_argument, err_space_not_found
from notespace.db.models import Space
from notespace.db.repository import Repository, new_id
from notespace.errors import InvalidArgumentError

space_app = typer.Typer(
    name="space",
    help="Manage spaces (create, list, delete).",
    add_completion=False,
)

_DbOption = Annotated[Path | None, typer.Option("--db", help="Path to notespace.db.")]


@space_app.command("create")
def space_create_cmd(
    name: Annotated[str, typer.Argument(help="Space name.")],
    user: Annotated[str, typer.Option("--user", help="Owner id.")] = "local",
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    tag: Annotated[list[str] | None, typer.Option("--tag", "-t", help="Tag (repeatable).")] = None,
    db: _DbOption = None,
) -> None:
    """Create a new space."""
    conn = open_existing_db(resolve_db_path(db, load_cli_config()))
    try:
        space = Repository(conn).add_space(
            Space(id=new_id(), user_id=user, name=name, description=description, tags=tag or [])
        )
    except InvalidArgumentError as exc:
        console.print(err_invalid_argument(str(exc)))
        raise typer.Exit(1) from exc
    finally:
        conn.close()
    console.print(f"[green]✓[/] Created space '{space.name}'")
    console.print(f"  id: {space.id}")


@space_app.command("list")
def space_list_cmd(
    user: Annotated[str | None, typer.Option("--user", help="Only this owner's spaces.")] = None,
    db: _DbOption = None,
) -> None:
    """List spaces."""
    conn = open_existing_db(resolve_db_path(db, load_cli_config()))
    try:
        repo = Repository(conn)
        spaces = repo.list_spaces(user_id=user)
        if not spaces:
            console.print("[yellow]No spaces yet.[/]  Run:  notespace space create <name>")
            raise typer.Exit(0)

        table = Table(title="Spaces", show_header=True, header_style="bold")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("Owner")
        table.add_column("Sources", justify="right")
        table.add_column("Tags")
        for space in spaces:
            table.add_row(
                space.id,
                space.name,
                space.user_id,
                str(len(repo.list_sources(space.id))),
                ", ".join(space.tags),
            )
        console.print(table)
    finally:
        conn.close()


@space_app.command("delete")
def space_delete_cmd(
    space_id: Annotated[str, typer.Argument(help="Space id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: _DbOption = None,
) -> None:
    """Delete a space with all its sources, notes and chats."""
    conn = open_existing_db(resolve_db_path(db, load_cli_config()))
    try:
        repo = Repository(conn)
        space = repo.get_space(space_id)
        if space is None:
            console.print(err_space_not_found(space_id))
            raise typer.Exit(1)

        source_count = len(repo.list_sources(space_id))
        console.print(f"\nDelete space: [bold]{space.name}[/]  ({source_count} sources)")
        if not yes and not typer.confirm("Confirm deletion?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

        repo.delete_space(space_id)
        console.print(f"[green]✓[/] Deleted space '{space.name}'")
    finally:
        conn.close()
