"""ContentExtractor — routes a source to the extractor for its kind."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

from notespace.config import ChunkerCfg, PollingCfg
from notespace.db.models import SourceKind
from notespace.errors import UnsupportedMediaTypeError
from notespace.ingest.audio import AudioExtractor
from notespace.ingest.base import BaseExtractor
from notespace.ingest.chunker import SemanticChunker
from notespace.ingest.document import DocumentExtractor, ImageExtractor
from notespace.ingest.plaintext import PlainTextExtractor
from notespace.ingest.transcript import TranscriptExtractor
from notespace.ingest.web import WebExtractor
from notespace.providers.base import GenerativeProvider, ProcessingResult
from notespace.providers.transcripts import TranscriptFetcher


class ContentExtractor:
    """Dispatch ``extract(source, kind)`` to a per-kind extractor.

    Args:
        provider: Generative provider for documents, images, audio and
            transcript chunking.
        transcripts: Caption fetcher for video-transcript sources.
        polling: Bounded wait for uploaded files.
        chunker: Word bounds for provider prompts and the local chunker;
            ``split_plain_text`` chunks plain text instead of storing it whole.
        sleep: Injected sleep for the polling loop.
    """

    def __init__(
        self,
        provider: GenerativeProvider,
        transcripts: TranscriptFetcher,
        polling: PollingCfg | None = None,
        chunker: ChunkerCfg | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        chunker = chunker or ChunkerCfg()
        semantic = SemanticChunker(min_words=chunker.min_words, max_words=chunker.max_words)
        self._extractors: dict[SourceKind, BaseExtractor] = {
            SourceKind.DOCUMENT: DocumentExtractor(provider, polling, chunker, sleep),
            SourceKind.IMAGE: ImageExtractor(provider, polling, chunker, sleep),
            SourceKind.AUDIO: AudioExtractor(provider, polling, chunker, sleep),
            SourceKind.VIDEO_TRANSCRIPT: TranscriptExtractor(transcripts, provider, chunker),
            SourceKind.PLAIN_TEXT: PlainTextExtractor(semantic if chunker.split_plain_text else None),
            SourceKind.WEB_LINK: WebExtractor(semantic),
        }

    def extractor_for(self, kind: SourceKind | str) -> BaseExtractor:
        try:
            return self._extractors[SourceKind.parse(kind)]
        except (KeyError, ValueError) as exc:
            raise UnsupportedMediaTypeError(f"Unsupported source kind '{kind}'.") from exc

    def validate(self, source: str | Path, kind: SourceKind | str, mime_type: str | None = None) -> None:
        """Network-free checks; raises an InputError subclass on bad input."""
        self.extractor_for(kind).validate(source, mime_type)

    async def extract(
        self, source: str | Path, kind: SourceKind | str, mime_type: str | None = None
    ) -> ProcessingResult:
        return await self.extractor_for(kind).extract(source, mime_type)
