"""External collaborators: generative-AI provider and caption fetcher."""

from notespace.providers.base import (
    GenerativeProvider,
    ProcessingResult,
    RemoteFile,
    parse_processing_result,
    wait_until_active,
)
from notespace.providers.transcripts import (
    CaptionCue,
    TranscriptFetcher,
    YouTubeTranscriptFetcher,
    extract_video_id,
)

__all__ = [
    "CaptionCue",
    "GenerativeProvider",
    "ProcessingResult",
    "RemoteFile",
    "TranscriptFetcher",
    "YouTubeTranscriptFetcher",
    "extract_video_id",
    "parse_processing_result",
    "wait_until_active",
]
