"""Plain-text extraction — no provider involved."""

from __future__ import annotations

from pathlib import Path

from notespace.db.models import SourceKind
from notespace.errors import InvalidArgumentError
from notespace.ingest.base import BaseExtractor
from notespace.ingest.chunker import SemanticChunker, summarize_prefix
from notespace.providers.base import ProcessingResult


class PlainTextExtractor(BaseExtractor):
    """Wrap the given text as a single chunk; the summary is its first ~200 chars.

    With a *chunker*, text is split semantically instead.
    """

    kind = SourceKind.PLAIN_TEXT

    def __init__(self, chunker: SemanticChunker | None = None) -> None:
        self._chunker = chunker

    def validate(self, source: str | Path, mime_type: str | None = None) -> None:
        if not str(source).strip():
            raise InvalidArgumentError("Plain-text content is empty.")

    async def extract(self, source: str | Path, mime_type: str | None = None) -> ProcessingResult:
        self.validate(source)
        text = str(source)
        chunks = self._chunker.chunk(text) if self._chunker else [text.strip()]
        return ProcessingResult(chunks=chunks, summary=summarize_prefix(text))
