"""Dense retriever: embed the query, rank stored chunks by cosine similarity.

The query is embedded with the same Embedder (model + dimensionality) used
for ingestion; a wrong-length query vector fails at embed time. Ranking runs
inside SQLite via sqlite-vec, scoped to one space when asked, and only over
chunks embedded with the current model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from notespace.db.models import Chunk
from notespace.db.repository import Repository
from notespace.db.vectors import encode
from notespace.errors import InvalidArgumentError
from notespace.rag.llm_client import Embedder


@dataclass
class SearchResult:
    """A retrieved chunk with its cosine similarity to the query."""

    chunk: Chunk
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunkId": self.chunk.id,
            "sourceId": self.chunk.source_id,
            "chunkIndex": self.chunk.chunk_index,
            "content": self.chunk.content,
            "metadata": self.chunk.metadata.to_dict(),
            "similarity": self.similarity,
        }


class Retriever:
    """Similarity search over embedded chunks.

    Args:
        repo: Open Repository instance.
        embedder: The ingestion-time Embedder.
    """

    def __init__(self, repo: Repository, embedder: Embedder) -> None:
        self._repo = repo
        self._embedder = embedder

    async def search(self, query: str, scope: str | None = None, limit: int = 5) -> list[SearchResult]:
        """Return at most *limit* chunks, best first; ties go to the newest chunk.

        Raises:
            InvalidArgumentError: ``limit <= 0`` or an empty query.
        """
        if limit <= 0:
            raise InvalidArgumentError(f"limit must be >= 1, got {limit}")
        if not query or not query.strip():
            raise InvalidArgumentError("Search query must not be empty.")

        vector = await self._embedder.embed(query)
        rows = self._repo.search_similar(
            encode(vector), self._embedder.model, space_id=scope, limit=limit
        )
        logger.debug("Search '{}' (scope={}) returned {} chunks", query[:60], scope, len(rows))
        return [SearchResult(chunk=chunk, similarity=similarity) for chunk, similarity in rows]
