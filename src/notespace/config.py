"""Notespace configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (NOTESPACE_EMBEDDING_MODEL, NOTESPACE_PROVIDER_MODEL,
                             NOTESPACE_LOG_LEVEL, NOTESPACE_DB)
  3. Per-workspace notespace.yaml  (next to notespace.db)
  4. Global ~/.notespace/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".notespace"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "notespace.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_output_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # access_token, auth_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections. Unknown keys produce a warning.
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["database", "embedding", "provider", "polling", "chunker", "retrieval", "logging", "server"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class DatabaseCfg:
    """SQLite location (notespace.yaml: database:)."""

    path: str = "notespace.db"


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (notespace.yaml: embedding:).

    ``dimensions`` is the corpus-wide vector length; every stored embedding
    must match it.
    """

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536


@dataclass
class ProviderCfg:
    """Generative-AI provider used for OCR, transcription and chunking."""

    model: str = "gemini-2.0-flash"
    temperature: float = 0.3
    max_output_tokens: int = 8192


@dataclass
class PollingCfg:
    """Bounded wait for uploaded files to leave the PROCESSING state."""

    interval_seconds: float = 10.0
    max_attempts: int = 30


@dataclass
class ChunkerCfg:
    """Target chunk size in words (client-side chunker and provider prompt)."""

    min_words: int = 200
    max_words: int = 1000
    split_plain_text: bool = False


@dataclass
class RetrievalCfg:
    limit: int = 5


@dataclass
class LoggingCfg:
    level: str = "INFO"
    file: str | None = None


@dataclass
class ServerCfg:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class NotespaceConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    provider: ProviderCfg = field(default_factory=ProviderCfg)
    polling: PollingCfg = field(default_factory=PollingCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)
    server: ServerCfg = field(default_factory=ServerCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: NotespaceConfig) -> None:
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.polling.max_attempts < 1:
        raise ConfigError(f"polling.max_attempts must be >= 1, got {cfg.polling.max_attempts}")
    if cfg.polling.interval_seconds < 0:
        raise ConfigError("polling.interval_seconds must not be negative")
    if not 0 < cfg.chunker.min_words <= cfg.chunker.max_words:
        raise ConfigError(
            "chunker.min_words must be > 0 and <= chunker.max_words "
            f"(got {cfg.chunker.min_words}..{cfg.chunker.max_words})"
        )
    if cfg.retrieval.limit < 1:
        raise ConfigError(f"retrieval.limit must be >= 1, got {cfg.retrieval.limit}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> NotespaceConfig:
    """Build a *NotespaceConfig* from a merged raw YAML dict."""
    cfg = NotespaceConfig()

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
        )

    if "provider" in data:
        p = data["provider"] or {}
        cfg.provider = ProviderCfg(
            model=str(p.get("model", cfg.provider.model)),
            temperature=float(p.get("temperature", cfg.provider.temperature)),
            max_output_tokens=int(p.get("max_output_tokens", cfg.provider.max_output_tokens)),
        )

    if "polling" in data:
        pl = data["polling"] or {}
        cfg.polling = PollingCfg(
            interval_seconds=float(pl.get("interval_seconds", cfg.polling.interval_seconds)),
            max_attempts=int(pl.get("max_attempts", cfg.polling.max_attempts)),
        )

    if "chunker" in data:
        c = data["chunker"] or {}
        cfg.chunker = ChunkerCfg(
            min_words=int(c.get("min_words", cfg.chunker.min_words)),
            max_words=int(c.get("max_words", cfg.chunker.max_words)),
            split_plain_text=bool(c.get("split_plain_text", cfg.chunker.split_plain_text)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(limit=int(r.get("limit", cfg.retrieval.limit)))

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=str(lg.get("level", cfg.logging.level)),
            file=lg.get("file") or cfg.logging.file,
        )

    if "server" in data:
        s = data["server"] or {}
        cfg.server = ServerCfg(
            host=str(s.get("host", cfg.server.host)),
            port=int(s.get("port", cfg.server.port)),
        )

    return cfg


def _apply_env_overrides(cfg: NotespaceConfig) -> NotespaceConfig:
    """Apply NOTESPACE_* environment variable overrides."""
    if model := os.environ.get("NOTESPACE_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("NOTESPACE_PROVIDER_MODEL"):
        cfg.provider.model = model
    if level := os.environ.get("NOTESPACE_LOG_LEVEL"):
        cfg.logging.level = level
    if db_path := os.environ.get("NOTESPACE_DB"):
        cfg.database.path = db_path
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> NotespaceConfig:
    """Load and return a merged *NotespaceConfig*.

    Applies layers in order: global → per-workspace → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *notespace.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields or a value
            is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg


def write_project_config(project_dir: Path, cfg: NotespaceConfig | None = None) -> Path:
    """Write a starter ``notespace.yaml`` into *project_dir* (never overwrites)."""
    cfg = cfg or NotespaceConfig()
    target = project_dir / _PROJECT_CONFIG_NAME
    if target.exists():
        return target
    content = (
        "# notespace workspace configuration.\n"
        "# NEVER store API keys here. Use environment variables:\n"
        "#   export GEMINI_API_KEY=...\n"
        "#   export OPENAI_API_KEY=sk-...\n"
        "\n"
        + yaml.safe_dump(
            {
                "database": {"path": cfg.database.path},
                "embedding": {"model": cfg.embedding.model, "dimensions": cfg.embedding.dimensions},
                "provider": {"model": cfg.provider.model},
                "polling": {
                    "interval_seconds": cfg.polling.interval_seconds,
                    "max_attempts": cfg.polling.max_attempts,
                },
                "chunker": {
                    "min_words": cfg.chunker.min_words,
                    "max_words": cfg.chunker.max_words,
                    "split_plain_text": cfg.chunker.split_plain_text,
                },
            },
            sort_keys=False,
        )
    )
    target.write_text(content, encoding="utf-8")
    return target
