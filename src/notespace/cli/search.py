"""notespace search — rank stored chunks by similarity to a query."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from notespace.cli.common import console, load_cli_config, open_existing_db, resolve_db_path
from notespace.cli.errors import err_embedding_model_mismatch, err_invalid_argument, err_no_api_key
from notespace.db.repository import Repository
from notespace.errors import InvalidArgumentError, NotespaceError, ProviderUnavailableError
from notespace.rag.llm_client import validate_api_key
from notespace.services import build_retriever

_PREVIEW_CHARS = 160


def search_cmd(
    query: Annotated[str, typer.Argument(help="Search text.")],
    space: Annotated[str | None, typer.Option("--space", "-s", help="Only search this space.")] = None,
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Maximum results.")] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to notespace.db.")] = None,
) -> None:
    """Search chunks by semantic similarity."""
    cfg = load_cli_config()
    limit = cfg.retrieval.limit if limit is None else limit
    if limit <= 0:
        console.print(err_invalid_argument(f"--limit must be >= 1, got {limit}"))
        raise typer.Exit(1)

    conn = open_existing_db(resolve_db_path(db, cfg))
    try:
        repo = Repository(conn)
        models = repo.embedding_model_counts()
        if models and cfg.embedding.model not in models:
            console.print(err_embedding_model_mismatch(sorted(models), cfg.embedding.model))
            raise typer.Exit(1)

        try:
            validate_api_key(cfg.embedding.model)
        except ProviderUnavailableError as exc:
            provider = cfg.embedding.model.split("/")[0] if "/" in cfg.embedding.model else "openai"
            console.print(err_no_api_key(provider))
            raise typer.Exit(1) from exc

        try:
            hits = asyncio.run(build_retriever(repo, cfg).search(query, scope=space, limit=limit))
        except InvalidArgumentError as exc:
            console.print(err_invalid_argument(str(exc)))
            raise typer.Exit(1) from exc
        except NotespaceError as exc:
            console.print(f"[red]Error:[/] {escape(str(exc))}")
            raise typer.Exit(1) from exc

        if not hits:
            console.print("[yellow]No results.[/]")
            raise typer.Exit(0)

        table = Table(title=f"Results for '{escape(query)}'", show_header=True, header_style="bold")
        table.add_column("#", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Source")
        table.add_column("Chunk")
        for rank, hit in enumerate(hits, start=1):
            source = repo.get_source(hit.chunk.source_id)
            preview = " ".join(hit.chunk.content.split())
            if len(preview) > _PREVIEW_CHARS:
                preview = preview[:_PREVIEW_CHARS] + "…"
            table.add_row(
                str(rank),
                f"{hit.similarity:.3f}",
                escape(source.title) if source else hit.chunk.source_id,
                escape(preview),
            )
        console.print(table)
    finally:
        conn.close()
