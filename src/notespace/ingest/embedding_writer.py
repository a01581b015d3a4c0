"""Embedding writer — lazy embedding pass over stored chunks.

Chunk content is persisted with its Source; embeddings are filled in here,
either right after ingestion or later in bulk. A chunk needs embedding when
it has none, or when its embedding came from a model other than the one
currently configured. Content edits clear the embedding, so edited chunks
are picked up by the next pass.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from notespace.db.models import Chunk
from notespace.db.repository import Repository
from notespace.db.vectors import encode
from notespace.rag.llm_client import Embedder


class EmbeddingWriter:
    """Embed chunks with one Embedder and store the float32 blobs.

    Args:
        repo:     Open Repository instance.
        embedder: Embedder for the corpus-wide model and dimensionality.
    """

    def __init__(self, repo: Repository, embedder: Embedder) -> None:
        self._repo = repo
        self._embedder = embedder

    @property
    def model(self) -> str:
        return self._embedder.model

    async def embed_chunks(self, chunks: Sequence[Chunk]) -> int:
        """Embed and store *chunks*. Returns the number written."""
        written = 0
        for chunk in chunks:
            if chunk.id is None:
                raise ValueError("Chunk has no id; persist it before embedding.")
            vector = await self._embedder.embed(chunk.content)
            self._repo.set_embedding(chunk.id, encode(vector), self._embedder.model)
            written += 1
        return written

    async def embed_source(self, source_id: str) -> int:
        """Embed every chunk of *source_id* that needs it."""
        pending = self._repo.list_chunks_needing_embedding(self._embedder.model, source_id=source_id)
        written = await self.embed_chunks(pending)
        logger.info("Embedded {} chunks of source {}", written, source_id)
        return written

    async def embed_pending(self, limit: int | None = None) -> int:
        """Embed chunks missing an embedding for the current model, oldest first."""
        pending = self._repo.list_chunks_needing_embedding(self._embedder.model, limit=limit)
        if not pending:
            logger.debug("No chunks need embedding for {}", self._embedder.model)
            return 0
        written = await self.embed_chunks(pending)
        logger.info("Embedded {} pending chunks with {}", written, self._embedder.model)
        return written
