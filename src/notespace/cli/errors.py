"""Notespace rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from notespace.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "cohere": "COHERE_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
        "voyage": "VOYAGE_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_no_db(db_path: str = "notespace.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  notespace init"
    )


def err_config(message: str) -> str:
    """Config file is invalid (forbidden key, out-of-range value)."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {escape(message)}\n"
        "  Fix notespace.yaml (or ~/.notespace/config.yaml) and retry."
    )


def err_space_not_found(space_id: str) -> str:
    return (
        f"[red]Error:[/] Space '{space_id}' does not exist.\n"
        "  Run:  notespace space list  to see available spaces."
    )


def err_source_not_found(source_id: str) -> str:
    """Source not found in database."""
    return (
        f"[yellow]Source not found:[/] '{source_id}' is not in the knowledge base.\n"
        "  Run:  notespace search <query>  or check the id you copied."
    )


def err_ingest_failed(title: str, kind: str, error: str | None) -> str:
    """One source failed; already-ingested sources are unaffected."""
    return (
        f"[red]✗ Failed:[/] {escape(title)} [dim]({kind})[/]\n"
        f"  {escape(error or 'unknown error')}\n"
        "  Nothing was stored for this source; fix the cause and ingest it again."
    )


def err_embedding_model_mismatch(db_models: list[str], config_model: str) -> str:
    """No chunks embedded with the configured model, but others exist."""
    return (
        f"[red]Error:[/] No chunks are embedded with '{config_model}'.\n"
        f"  Database has embeddings from:  {', '.join(db_models)}\n"
        "  Run:  notespace embed  to re-embed with the configured model."
    )


def err_invalid_argument(message: str) -> str:
    return f"[red]Error:[/] {escape(message)}"


def warn_pending_embeddings(count: int) -> str:
    """Shown after ingest --no-embed."""
    return (
        f"[yellow]⚠[/] {count} chunk(s) are not embedded yet and won't appear in search.\n"
        "  Run:  notespace embed"
    )
