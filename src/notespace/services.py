"""Construct the runtime collaborators from a NotespaceConfig.

Nothing here is a module-level singleton: every client is built on demand
and handed to whoever needs it.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from notespace.config import NotespaceConfig
from notespace.db.connection import Database
from notespace.db.repository import Repository
from notespace.db.schema import initialize
from notespace.ingest.embedding_writer import EmbeddingWriter
from notespace.ingest.extractor import ContentExtractor
from notespace.ingest.orchestrator import Orchestrator
from notespace.providers.gemini import GeminiProvider
from notespace.providers.transcripts import YouTubeTranscriptFetcher
from notespace.rag.llm_client import Embedder
from notespace.rag.retriever import Retriever


def open_db(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (creating if needed) and migrate the database at *db_path*."""
    conn = Database(db_path, check_same_thread=check_same_thread).connect()
    initialize(conn)
    return conn


def build_embedder(cfg: NotespaceConfig) -> Embedder:
    return Embedder(model=cfg.embedding.model, dimensions=cfg.embedding.dimensions)


def build_extractor(cfg: NotespaceConfig) -> ContentExtractor:
    provider = GeminiProvider(
        model=cfg.provider.model,
        temperature=cfg.provider.temperature,
        max_output_tokens=cfg.provider.max_output_tokens,
    )
    return ContentExtractor(
        provider=provider,
        transcripts=YouTubeTranscriptFetcher(),
        polling=cfg.polling,
        chunker=cfg.chunker,
    )


def build_orchestrator(repo: Repository, cfg: NotespaceConfig, embed_now: bool = False) -> Orchestrator:
    return Orchestrator(
        repo,
        build_extractor(cfg),
        embedding_writer=EmbeddingWriter(repo, build_embedder(cfg)),
        embed_now=embed_now,
    )


def build_retriever(repo: Repository, cfg: NotespaceConfig) -> Retriever:
    return Retriever(repo, build_embedder(cfg))
