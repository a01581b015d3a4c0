"""Helpers shared by the CLI commands: config loading and database access."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from notespace.cli.errors import err_config, err_no_db
from notespace.config import ConfigError, NotespaceConfig, load_config
from notespace.services import open_db

console = Console()


def load_cli_config() -> NotespaceConfig:
    """Load the merged config for the current directory, or exit 1."""
    try:
        return load_config(Path.cwd())
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def resolve_db_path(db: Path | None, cfg: NotespaceConfig) -> Path:
    return db if db is not None else Path(cfg.database.path)


def open_existing_db(db_path: Path) -> sqlite3.Connection:
    """Open an existing database; exit 1 with a hint when it is missing."""
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return open_db(db_path)
