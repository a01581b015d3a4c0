"""Notespace CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from notespace.cli.common import load_cli_config
from notespace.cli.embed import embed_cmd
from notespace.cli.ingest import ingest_cmd
from notespace.cli.init import init_cmd
from notespace.cli.remove import remove_cmd
from notespace.cli.search import search_cmd
from notespace.cli.serve import serve_cmd
from notespace.cli.space import space_app
from notespace.utils.logger import setup_logger


def _installed_version() -> str:
    try:
        return importlib.metadata.version("notespace")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"notespace {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="notespace",
    help=(
        "Notespace — personal knowledge spaces with semantic search.\n\n"
        "  notespace ingest  Turn documents, images, audio, videos, pages and notes into chunks.\n"
        "  notespace search  Find the chunks most similar to a question."
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
        typer.Option("--verbose", "-v", help="Log at DEBUG level."),
    ] = False,
) -> None:
    """Notespace — personal knowledge spaces with semantic search."""
    cfg = load_cli_config()
    setup_logger("DEBUG" if verbose else cfg.logging.level, cfg.logging.file)


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("embed")(embed_cmd)
app.command("search")(search_cmd)
app.command("remove")(remove_cmd)
app.command("serve")(serve_cmd)
app.add_typer(space_app, name="space")


@app.command("version")
def version_cmd() -> None:
    """Show the installed notespace version."""
    typer.echo(f"notespace {_installed_version()}")


if __name__ == "__main__":
    app()
