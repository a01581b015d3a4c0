"""Video-transcript extraction.

Caption cues are fetched and joined into one whitespace-normalized text.
With a provider configured, the text is sent for semantic chunking and a
summary; without one, the whole transcript is returned as a single chunk
with a placeholder summary.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from notespace.config import ChunkerCfg
from notespace.db.models import ChunkMetadata, SourceKind, SourceMetadata
from notespace.errors import NoTranscriptAvailableError
from notespace.ingest.base import BaseExtractor
from notespace.providers.base import GenerativeProvider, ProcessingResult, parse_processing_result
from notespace.providers.transcripts import CaptionCue, TranscriptFetcher, extract_video_id

PLACEHOLDER_SUMMARY = "Transcript of YouTube video (summary not available without Gemini AI)"

_TRANSCRIPT_PROMPT = """\
Here is the transcript of a video:

{transcript}

Split the transcript into semantic chunks of {min_words}-{max_words} words \
each, keeping the original wording, and return one string per chunk in \
"text". Put a concise summary of the video in "summary"."""


def join_cues(cues: list[CaptionCue]) -> str:
    """Concatenate cue texts with single spaces, collapsing all whitespace."""
    return " ".join(" ".join(cue.text for cue in cues).split())


class TranscriptExtractor(BaseExtractor):
    kind = SourceKind.VIDEO_TRANSCRIPT

    def __init__(
        self,
        fetcher: TranscriptFetcher,
        provider: GenerativeProvider | None = None,
        chunker: ChunkerCfg | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._provider = provider
        self._chunker = chunker or ChunkerCfg()

    def validate(self, source: str | Path, mime_type: str | None = None) -> None:
        extract_video_id(str(source))

    async def extract(self, source: str | Path, mime_type: str | None = None) -> ProcessingResult:
        video_id = extract_video_id(str(source))
        cues = await self._fetcher.fetch(video_id)
        text = join_cues(cues)
        if not text:
            raise NoTranscriptAvailableError(video_id, "captions are empty")

        metadata = SourceMetadata(
            duration=round(cues[-1].end, 3),
            extra={"video_id": video_id, "cue_count": len(cues)},
        )

        if self._provider is None or not self._provider.available:
            logger.warning("No AI provider configured; storing transcript of {} as one chunk", video_id)
            return ProcessingResult(
                chunks=[text],
                summary=PLACEHOLDER_SUMMARY,
                chunk_metadata=[
                    ChunkMetadata(position=0, start_time=cues[0].start, end_time=round(cues[-1].end, 3))
                ],
                source_metadata=metadata,
            )

        prompt = _TRANSCRIPT_PROMPT.format(
            transcript=text,
            min_words=self._chunker.min_words,
            max_words=self._chunker.max_words,
        )
        result = parse_processing_result(await self._provider.generate_json(prompt))
        result.source_metadata = metadata
        logger.info("Chunked transcript of {} into {} chunks", video_id, len(result.chunks))
        return result
