"""notespace serve — run the HTTP API with uvicorn."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import uvicorn

from notespace.cli.common import console, load_cli_config, open_existing_db, resolve_db_path
from notespace.db.repository import Repository
from notespace.server.app import create_app
from notespace.services import build_orchestrator, build_retriever, open_db


def serve_cmd(
    host: Annotated[str | None, typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option("--port", help="Bind port.")] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to notespace.db.")] = None,
) -> None:
    """Serve /api/store-source and /api/search."""
    cfg = load_cli_config()
    db_path = resolve_db_path(db, cfg)
    open_existing_db(db_path).close()

    conn = open_db(db_path, check_same_thread=False)
    try:
        repo = Repository(conn)
        app = create_app(build_orchestrator(repo, cfg), build_retriever(repo, cfg))
        bind_host = host or cfg.server.host
        bind_port = port or cfg.server.port
        console.print(f"Serving notespace API on http://{bind_host}:{bind_port}  [dim]({db_path})[/]")
        uvicorn.run(app, host=bind_host, port=bind_port, log_level=_uvicorn_level(cfg.logging.level))
    finally:
        conn.close()


def _uvicorn_level(level: str) -> str:
    level = level.lower()
    return level if level in {"critical", "error", "warning", "info", "debug", "trace"} else "info"
