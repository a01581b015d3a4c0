"""Ingestion orchestrator — one (content, SourceData) pair in, one IngestionResult out.

The orchestrator is the failure boundary of the ingestion pipeline: every
NotespaceError (and any unexpected exception) raised below it becomes an
``IngestionResult(success=False, error=...)``. A Source and its Chunks are
written in one transaction, so a failed run leaves nothing behind.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from loguru import logger

from notespace.db.models import Chunk, ChunkMetadata, Source, SourceKind, SourceMetadata
from notespace.db.repository import Repository, new_id
from notespace.errors import (
    InvalidArgumentError,
    MissingFieldError,
    NotespaceError,
    UnsupportedMediaTypeError,
)
from notespace.ingest.embedding_writer import EmbeddingWriter
from notespace.ingest.extractor import ContentExtractor
from notespace.providers.base import ProcessingResult

_FILE_KINDS = frozenset({SourceKind.DOCUMENT, SourceKind.IMAGE, SourceKind.AUDIO})
_URL_KINDS = frozenset({SourceKind.VIDEO_TRANSCRIPT, SourceKind.WEB_LINK})


@dataclass
class SourceData:
    """Caller-supplied description of a source to ingest."""

    title: str
    kind: SourceKind | str
    space_id: str
    user_id: str
    description: str | None = None
    url: str | None = None
    file_path: str | None = None
    mime_type: str | None = None
    tags: list[str] = field(default_factory=list)
    metadata: SourceMetadata | None = None


@dataclass
class IngestionResult:
    """Outcome of one orchestration run (never persisted)."""

    success: bool
    title: str
    kind: str
    source_id: str | None = None
    description: str | None = None
    chunk_count: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "sourceId": self.source_id,
            "title": self.title,
            "kind": self.kind,
            "description": self.description,
            "chunkCount": self.chunk_count,
            "error": self.error,
        }


class Orchestrator:
    """Extract → create Source + Chunks atomically → optionally embed.

    Args:
        repo: Open Repository instance.
        extractor: Per-kind content extraction.
        embedding_writer: Used when *embed_now* is set; otherwise chunks are
            left for a later ``EmbeddingWriter.embed_pending()`` pass.
        embed_now: Embed the new chunks right after the commit.
    """

    def __init__(
        self,
        repo: Repository,
        extractor: ContentExtractor,
        embedding_writer: EmbeddingWriter | None = None,
        embed_now: bool = False,
    ) -> None:
        if embed_now and embedding_writer is None:
            raise ValueError("embed_now requires an embedding_writer")
        self._repo = repo
        self._extractor = extractor
        self._embedding_writer = embedding_writer
        self._embed_now = embed_now

    async def ingest(self, content: str | Path | None, source_data: SourceData) -> IngestionResult:
        """Extract *content* and store it as one Source. Never raises NotespaceError."""
        try:
            kind = _parse_kind(source_data.kind)
            source_input = _resolve_input(content, source_data, kind)
            self._extractor.validate(source_input, kind, source_data.mime_type)
            logger.info("Ingesting {} '{}'", kind.value, source_data.title)
            result = await self._extractor.extract(source_input, kind, source_data.mime_type)
        except NotespaceError as exc:
            return _failure(source_data, exc)
        except Exception as exc:
            logger.exception("Unexpected error while extracting '{}'", source_data.title)
            return _failure(source_data, exc)

        if kind in _FILE_KINDS and source_data.file_path is None:
            source_data = replace(source_data, file_path=str(source_input))
        elif kind in _URL_KINDS and source_data.url is None:
            source_data = replace(source_data, url=str(source_input))
        return await self.store(result, source_data)

    async def store(self, result: ProcessingResult, source_data: SourceData) -> IngestionResult:
        """Persist an already-extracted *result* as one Source with its Chunks."""
        try:
            kind = _parse_kind(source_data.kind)
            _require_identity(source_data)
            source, chunks = _build_rows(result, source_data, kind)
            self._repo.create_source_with_chunks(source, chunks)
        except NotespaceError as exc:
            return _failure(source_data, exc)
        except Exception as exc:
            logger.exception("Unexpected error while storing '{}'", source_data.title)
            return _failure(source_data, exc)

        logger.info("Stored source {} '{}' with {} chunks", source.id, source.title, len(chunks))

        if self._embed_now and self._embedding_writer is not None:
            try:
                await self._embedding_writer.embed_source(source.id)
            except Exception as exc:
                # Chunks stay pending; the next embed pass retries them.
                logger.warning("Embedding deferred for source {}: {}", source.id, exc)

        return IngestionResult(
            success=True,
            title=source.title,
            kind=kind.value,
            source_id=source.id,
            description=source.description,
            chunk_count=len(chunks),
        )

    async def ingest_many(
        self, items: Iterable[tuple[str | Path | None, SourceData]]
    ) -> list[IngestionResult]:
        """Ingest each item in turn; a failure does not stop the batch."""
        results: list[IngestionResult] = []
        for content, source_data in items:
            results.append(await self.ingest(content, source_data))
        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning("{} of {} sources failed to ingest", failed, len(results))
        return results


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _parse_kind(kind: SourceKind | str) -> SourceKind:
    if not kind:
        raise MissingFieldError("kind")
    try:
        return SourceKind.parse(kind)
    except ValueError as exc:
        raise UnsupportedMediaTypeError(f"Unsupported source kind '{kind}'.") from exc


def _require_identity(source_data: SourceData) -> None:
    for name in ("title", "space_id", "user_id"):
        value = getattr(source_data, name)
        if not value or not str(value).strip():
            raise MissingFieldError(name)


def _resolve_input(content: str | Path | None, source_data: SourceData, kind: SourceKind) -> str | Path:
    _require_identity(source_data)
    if content is not None and str(content).strip():
        return content
    if kind in _FILE_KINDS and source_data.file_path:
        return Path(source_data.file_path)
    if kind in _URL_KINDS and source_data.url:
        return source_data.url
    field_name = "file_path" if kind in _FILE_KINDS else "url" if kind in _URL_KINDS else "content"
    raise MissingFieldError(field_name, kind.value)


def _build_rows(
    result: ProcessingResult, source_data: SourceData, kind: SourceKind
) -> tuple[Source, list[Chunk]]:
    if result.chunk_metadata and len(result.chunk_metadata) != len(result.chunks):
        raise InvalidArgumentError("chunk_metadata must be empty or parallel to chunks")

    pairs = [
        (text.strip(), result.chunk_metadata[i] if result.chunk_metadata else ChunkMetadata())
        for i, text in enumerate(result.chunks)
        if text and text.strip()
    ]
    if not pairs:
        raise InvalidArgumentError(f"No content could be extracted from '{source_data.title}'.")

    metadata = result.source_metadata
    if source_data.metadata is not None:
        merged = {**metadata.to_dict(), **source_data.metadata.to_dict()}
        metadata = SourceMetadata.from_dict(merged)

    source = Source(
        id=new_id(),
        space_id=source_data.space_id,
        user_id=source_data.user_id,
        title=source_data.title.strip(),
        kind=kind,
        description=source_data.description or result.summary or None,
        url=source_data.url,
        file_path=source_data.file_path,
        tags=list(source_data.tags),
        metadata=metadata,
    )
    chunks = [
        Chunk(
            source_id=source.id,
            chunk_index=position,
            content=text,
            metadata=replace(chunk_meta, position=position),
            tags=list(source_data.tags),
        )
        for position, (text, chunk_meta) in enumerate(pairs)
    ]
    return source, chunks


def _failure(source_data: SourceData, exc: BaseException) -> IngestionResult:
    kind = source_data.kind.value if isinstance(source_data.kind, SourceKind) else str(source_data.kind)
    logger.warning("Ingestion of {} '{}' failed: {}", kind, source_data.title, exc)
    return IngestionResult(success=False, title=source_data.title, kind=kind, error=str(exc))
