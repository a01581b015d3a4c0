"""notespace ingest — ingest sources into a space.

SOURCE is interpreted by --kind:
  document / image / audio   → local file path
  video-transcript           → YouTube URL or 11-character video id
  web-link                   → http(s) URL
  plain-text                 → literal text, or a path to a text file

Several SOURCE arguments may be given; each is ingested independently and a
failure does not stop the batch.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from notespace.cli.common import console, load_cli_config, open_existing_db, resolve_db_path
from notespace.cli.errors import (
    err_ingest_failed,
    err_invalid_argument,
    err_space_not_found,
    warn_pending_embeddings,
)
from notespace.db.models import SourceKind
from notespace.db.repository import Repository
from notespace.errors import ProviderUnavailableError
from notespace.ingest.orchestrator import SourceData
from notespace.rag.llm_client import validate_api_key
from notespace.services import build_orchestrator

_TEXT_FILE_EXTS = {".txt", ".md", ".markdown", ".rst", ".text"}


def ingest_cmd(
    sources: Annotated[
        list[str],
        typer.Argument(help="Path, URL, video id or text (see --kind)."),
    ],
    space: Annotated[str, typer.Option("--space", "-s", help="Target space id.")],
    kind: Annotated[
        str,
        typer.Option("--kind", "-k", help="document | image | audio | video-transcript | plain-text | web-link"),
    ],
    title: Annotated[
        str | None,
        typer.Option("--title", help="Source title (single SOURCE only; derived if omitted)."),
    ] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    tag: Annotated[list[str] | None, typer.Option("--tag", "-t", help="Tag (repeatable).")] = None,
    user: Annotated[str, typer.Option("--user", help="Owner id.")] = "local",
    embed: Annotated[
        bool,
        typer.Option("--embed/--no-embed", help="Embed chunks right away (default) or defer to `notespace embed`."),
    ] = True,
    db: Annotated[Path | None, typer.Option("--db", help="Path to notespace.db.")] = None,
) -> None:
    """Ingest one or more sources into a space."""
    try:
        source_kind = SourceKind.parse(kind)
    except ValueError:
        console.print(err_invalid_argument(f"Unknown kind '{kind}'."))
        raise typer.Exit(1)
    if title and len(sources) > 1:
        console.print(err_invalid_argument("--title can only be used with a single SOURCE."))
        raise typer.Exit(1)

    cfg = load_cli_config()
    conn = open_existing_db(resolve_db_path(db, cfg))
    try:
        repo = Repository(conn)
        if repo.get_space(space) is None:
            console.print(err_space_not_found(space))
            raise typer.Exit(1)

        if embed:
            try:
                validate_api_key(cfg.embedding.model)
            except ProviderUnavailableError as exc:
                console.print(f"[yellow]⚠[/] {exc} Embedding deferred.")
                embed = False

        orchestrator = build_orchestrator(repo, cfg, embed_now=embed)
        items = [
            (
                _content_for(src, source_kind),
                SourceData(
                    title=title or _derive_title(src, source_kind),
                    kind=source_kind,
                    space_id=space,
                    user_id=user,
                    description=description,
                    tags=list(tag or []),
                ),
            )
            for src in sources
        ]
        results = asyncio.run(orchestrator.ingest_many(items))

        failed = 0
        for result in results:
            if result.success:
                console.print(
                    f"[green]✓[/] {result.title} [dim]({result.kind})[/] — "
                    f"{result.chunk_count} chunks  id: {result.source_id}"
                )
            else:
                failed += 1
                console.print(err_ingest_failed(result.title, result.kind, result.error))

        pending = len(repo.list_chunks_needing_embedding(cfg.embedding.model))
        if pending:
            console.print(warn_pending_embeddings(pending))
    finally:
        conn.close()

    if failed:
        raise typer.Exit(1)


def _content_for(source: str, kind: SourceKind) -> str | Path:
    if kind in (SourceKind.DOCUMENT, SourceKind.IMAGE, SourceKind.AUDIO):
        return Path(source)
    if kind is SourceKind.PLAIN_TEXT:
        path = Path(source)
        if path.suffix.lower() in _TEXT_FILE_EXTS and path.is_file():
            return path.read_text(encoding="utf-8", errors="replace")
    return source


def _derive_title(source: str, kind: SourceKind) -> str:
    if kind in (SourceKind.DOCUMENT, SourceKind.IMAGE, SourceKind.AUDIO):
        return Path(source).name
    if kind is SourceKind.PLAIN_TEXT:
        path = Path(source)
        if path.suffix.lower() in _TEXT_FILE_EXTS and path.is_file():
            return path.name
        first_line = " ".join(source.split())[:60]
        return first_line or "Untitled note"
    return source
