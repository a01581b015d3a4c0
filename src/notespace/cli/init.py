"""notespace init — create a workspace.

Creates:
  notespace.db     — empty knowledge base with schema
  notespace.yaml   — workspace config (never overwritten)
  .gitignore       — ignores notespace.db and its WAL files
Optionally creates a first space (--space).
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from notespace.cli.common import console
from notespace.config import NotespaceConfig, write_project_config
from notespace.db.models import Space
from notespace.db.repository import Repository, new_id
from notespace.services import open_db

_GITIGNORE_ENTRIES = ("notespace.db", "notespace.db-wal", "notespace.db-shm")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
    space: Annotated[
        str | None,
        typer.Option("--space", help="Also create a first space with this name."),
    ] = None,
    user: Annotated[
        str,
        typer.Option("--user", help="Owner id for the created space."),
    ] = "local",
) -> None:
    """Initialize a notespace workspace."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)
    cfg = NotespaceConfig()
    db_path = project_dir / cfg.database.path

    if db_path.exists():
        console.print(f"[yellow]⚠[/]  {db_path} already exists — schema checked, data preserved.")

    conn = open_db(db_path)
    try:
        console.print(f"  [green]✓[/] {db_path.name}")

        cfg_path = write_project_config(project_dir, cfg)
        console.print(f"  [green]✓[/] {cfg_path.name}")

        _update_gitignore(project_dir)

        if space:
            created = Repository(conn).add_space(Space(id=new_id(), user_id=user, name=space))
            console.print(f"  [green]✓[/] space '{created.name}' [dim]({created.id})[/]")
    finally:
        conn.close()

    console.print(f"\n[bold green]✓ Workspace initialized in {project_dir}.[/]")
    console.print("\nNext steps:")
    console.print("  1. notespace space create <name>                     (if you skipped --space)")
    console.print("  2. notespace ingest --space <id> --kind <kind> <source>")
    console.print("  3. notespace search <query>")


def _update_gitignore(project_dir: Path) -> None:
    path = project_dir / ".gitignore"
    existing = path.read_text(encoding="utf-8").splitlines() if path.exists() else []
    missing = [e for e in _GITIGNORE_ENTRIES if e not in existing]
    if not missing:
        return
    lines = existing + ["# notespace", *missing]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    console.print("  [green]✓[/] .gitignore")
