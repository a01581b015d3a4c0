"""notespace embed — lazy embedding pass.

Embeds every chunk that has no embedding, or one produced by a model other
than the configured ``embedding.model``.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from notespace.cli.common import console, load_cli_config, open_existing_db, resolve_db_path
from notespace.cli.errors import err_no_api_key
from notespace.db.repository import Repository
from notespace.errors import NotespaceError, ProviderUnavailableError
from notespace.ingest.embedding_writer import EmbeddingWriter
from notespace.rag.llm_client import validate_api_key
from notespace.services import build_embedder


def embed_cmd(
    limit: Annotated[
        int | None,
        typer.Option("--limit", min=1, help="Embed at most this many chunks."),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to notespace.db.")] = None,
) -> None:
    """Embed chunks that are missing an embedding for the configured model."""
    cfg = load_cli_config()
    conn = open_existing_db(resolve_db_path(db, cfg))
    try:
        repo = Repository(conn)
        pending = len(repo.list_chunks_needing_embedding(cfg.embedding.model, limit=limit))
        if not pending:
            console.print("[green]✓[/] All chunks are embedded.")
            raise typer.Exit(0)

        try:
            validate_api_key(cfg.embedding.model)
        except ProviderUnavailableError as exc:
            provider = cfg.embedding.model.split("/")[0] if "/" in cfg.embedding.model else "openai"
            console.print(err_no_api_key(provider))
            raise typer.Exit(1) from exc

        console.print(f"Embedding {pending} chunk(s) with [bold]{cfg.embedding.model}[/] …")
        writer = EmbeddingWriter(repo, build_embedder(cfg))
        try:
            written = asyncio.run(writer.embed_pending(limit=limit))
        except NotespaceError as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(1) from exc
        console.print(f"[green]✓[/] Embedded {written} chunk(s).")
    finally:
        conn.close()
