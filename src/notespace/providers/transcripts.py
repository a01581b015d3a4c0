"""Caption-track fetching for video-transcript sources."""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger
from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    TranscriptsDisabled,
    YouTubeTranscriptApi,
)

from notespace.errors import InvalidArgumentError, NoTranscriptAvailableError, ProviderError

_VIDEO_ID_RE = re.compile(r"^.*(?:youtu\.be/|v/|u/\w/|embed/|shorts/|watch\?v=|&v=)([^#&?]*).*")
_BARE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")


@dataclass
class CaptionCue:
    """One caption entry. Offsets are in seconds."""

    text: str
    start: float
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration


def extract_video_id(url_or_id: str) -> str:
    """Return the 11-character video id from a YouTube URL (or a bare id).

    Raises:
        InvalidArgumentError: If no valid id can be found.
    """
    candidate = url_or_id.strip()
    if _BARE_ID_RE.match(candidate):
        return candidate
    match = _VIDEO_ID_RE.match(candidate)
    if match and len(match.group(1)) == 11:
        return match.group(1)
    raise InvalidArgumentError(f"Invalid YouTube URL: '{url_or_id}'")


class TranscriptFetcher(ABC):
    """Fetches an ordered caption track for a video id."""

    @abstractmethod
    async def fetch(self, video_id: str) -> list[CaptionCue]:
        """Return caption cues in playback order.

        Raises:
            NoTranscriptAvailableError: The video has no captions.
        """


class YouTubeTranscriptFetcher(TranscriptFetcher):
    """Caption fetcher backed by ``youtube-transcript-api``.

    The library is synchronous, so calls run in a worker thread.
    """

    def __init__(
        self,
        languages: Sequence[str] = ("en",),
        api: YouTubeTranscriptApi | None = None,
    ) -> None:
        self._languages = list(languages)
        self._api = api or YouTubeTranscriptApi()

    async def fetch(self, video_id: str) -> list[CaptionCue]:
        logger.debug("Fetching transcript for {}", video_id)
        try:
            fetched = await asyncio.to_thread(self._api.fetch, video_id, languages=self._languages)
        except (NoTranscriptFound, TranscriptsDisabled) as exc:
            raise NoTranscriptAvailableError(video_id, type(exc).__name__) from exc
        except CouldNotRetrieveTranscript as exc:
            raise ProviderError(f"Could not retrieve transcript for '{video_id}': {exc}") from exc

        cues = [
            CaptionCue(text=snippet.text, start=float(snippet.start), duration=float(snippet.duration))
            for snippet in fetched
        ]
        if not cues:
            raise NoTranscriptAvailableError(video_id)
        return cues
