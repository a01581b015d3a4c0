"""Tests for the per-kind extractors and the ContentExtractor dispatcher."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import pypdf
import pytest
from pypdf.errors import PdfReadError

from conftest import FakeFetcher, FakeProvider, no_sleep
from notespace.config import ChunkerCfg, PollingCfg
from notespace.db.models import SourceKind
from notespace.errors import (
    ExternalProcessingFailedError,
    InvalidArgumentError,
    NoTranscriptAvailableError,
    ProcessingTimeoutError,
    ProviderResponseInvalidError,
    ProviderUnavailableError,
    UnsupportedMediaTypeError,
)
from notespace.ingest.audio import AudioExtractor
from notespace.ingest.base import AUDIO_TYPES, IMAGE_TYPES, resolve_mime_type
from notespace.ingest.chunker import SemanticChunker
from notespace.ingest.document import DocumentExtractor, ImageExtractor
from notespace.ingest.extractor import ContentExtractor
from notespace.ingest.plaintext import PlainTextExtractor
from notespace.ingest.transcript import PLACEHOLDER_SUMMARY, TranscriptExtractor
from notespace.providers.transcripts import CaptionCue

_POLLING = PollingCfg(interval_seconds=10.0, max_attempts=3)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _pdf(tmp_path: Path, pages: int = 2, name: str = "paper.pdf") -> Path:
    writer = pypdf.PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=72, height=72)
    path = tmp_path / name
    with open(path, "wb") as fh:
        writer.write(fh)
    return path


def _file(tmp_path: Path, name: str, data: bytes = b"\x00binary\x00") -> Path:
    path = tmp_path / name
    path.write_bytes(data)
    return path


def _run(coro):
    return asyncio.run(coro)


# ------------------------------------------------------------------
# MIME resolution
# ------------------------------------------------------------------


@pytest.mark.parametrize("name,expected", [
    ("a.jpg", "image/jpeg"),
    ("a.JPEG", "image/jpeg"),
    ("a.png", "image/png"),
    ("a.webp", "image/webp"),
    ("a.gif", "image/gif"),
])
def test_image_mime_types(name, expected):
    assert resolve_mime_type(name, IMAGE_TYPES, "image") == expected


@pytest.mark.parametrize("name,expected", [
    ("a.mp3", "audio/mp3"),
    ("a.wav", "audio/wav"),
    ("a.ogg", "audio/ogg"),
])
def test_audio_mime_types(name, expected):
    assert resolve_mime_type(name, AUDIO_TYPES, "audio") == expected


def test_unsupported_extension_raises():
    with pytest.raises(UnsupportedMediaTypeError, match="Unsupported image format '.bmp'"):
        resolve_mime_type("a.bmp", IMAGE_TYPES, "image")


def test_declared_mime_alias_accepted():
    assert resolve_mime_type("a.mp3", AUDIO_TYPES, "audio", mime_type="audio/mpeg") == "audio/mp3"


def test_declared_mime_mismatch_raises():
    with pytest.raises(UnsupportedMediaTypeError, match="does not match"):
        resolve_mime_type("a.png", IMAGE_TYPES, "image", mime_type="image/gif")


# ------------------------------------------------------------------
# Document
# ------------------------------------------------------------------


def test_document_extract_success(tmp_path):
    provider = FakeProvider(states=("PROCESSING", "ACTIVE"))
    extractor = DocumentExtractor(provider, _POLLING, ChunkerCfg(), sleep=no_sleep)

    result = _run(extractor.extract(_pdf(tmp_path, pages=2)))

    assert result.chunks == ["First chunk.", "Second chunk."]
    assert result.summary == "A summary."
    assert result.source_metadata.num_pages == 2
    assert provider.uploads[0][1] == "application/pdf"
    assert provider.polls == 2
    prompt, remote = provider.prompts[0]
    assert "200-1000 words" in prompt
    assert "LaTeX" in prompt
    assert remote.state == "ACTIVE"


def test_document_unsupported_extension_fails_before_upload(tmp_path):
    provider = FakeProvider()
    extractor = DocumentExtractor(provider, _POLLING, sleep=no_sleep)
    with pytest.raises(UnsupportedMediaTypeError):
        _run(extractor.extract(_file(tmp_path, "paper.docx")))
    assert provider.uploads == []


def test_document_unreadable_pdf_fails_before_upload(tmp_path):
    provider = FakeProvider()
    extractor = DocumentExtractor(provider, _POLLING, sleep=no_sleep)
    with patch("notespace.ingest.document.pypdf.PdfReader", side_effect=PdfReadError("EOF marker not found")):
        with pytest.raises(UnsupportedMediaTypeError, match="not a readable PDF"):
            _run(extractor.extract(_file(tmp_path, "broken.pdf")))
    assert provider.uploads == []


def test_document_missing_file_raises(tmp_path):
    extractor = DocumentExtractor(FakeProvider(), _POLLING, sleep=no_sleep)
    with pytest.raises(InvalidArgumentError, match="Cannot access"):
        _run(extractor.extract(tmp_path / "missing.pdf"))


def test_document_empty_file_raises(tmp_path):
    extractor = DocumentExtractor(FakeProvider(), _POLLING, sleep=no_sleep)
    with pytest.raises(InvalidArgumentError, match="empty"):
        _run(extractor.extract(_file(tmp_path, "empty.pdf", b"")))


def test_document_failed_state_names_resource(tmp_path):
    provider = FakeProvider(states=("PROCESSING", "FAILED"))
    extractor = DocumentExtractor(provider, _POLLING, sleep=no_sleep)
    with pytest.raises(ExternalProcessingFailedError, match="files/fake-1") as excinfo:
        _run(extractor.extract(_pdf(tmp_path)))
    assert excinfo.value.state == "FAILED"
    assert provider.prompts == []


def test_document_polling_is_bounded(tmp_path):
    provider = FakeProvider(states=("PROCESSING",))
    extractor = DocumentExtractor(provider, _POLLING, sleep=no_sleep)
    with pytest.raises(ProcessingTimeoutError):
        _run(extractor.extract(_pdf(tmp_path)))
    assert provider.polls == _POLLING.max_attempts


def test_document_invalid_response_shape(tmp_path):
    provider = FakeProvider(response='{"text": "not a list", "summary": "s"}')
    extractor = DocumentExtractor(provider, _POLLING, sleep=no_sleep)
    with pytest.raises(ProviderResponseInvalidError):
        _run(extractor.extract(_pdf(tmp_path)))


def test_document_provider_unavailable(tmp_path):
    provider = FakeProvider(available=False)
    extractor = DocumentExtractor(provider, _POLLING, sleep=no_sleep)
    with pytest.raises(ProviderUnavailableError):
        _run(extractor.extract(_pdf(tmp_path)))
    assert provider.uploads == []


# ------------------------------------------------------------------
# Image + audio
# ------------------------------------------------------------------


def test_image_extract_uploads_with_image_mime(tmp_path):
    provider = FakeProvider()
    result = _run(ImageExtractor(provider, _POLLING, sleep=no_sleep).extract(_file(tmp_path, "board.png")))
    assert provider.uploads[0][1] == "image/png"
    assert "OCR" in provider.prompts[0][0]
    assert result.source_metadata.num_pages is None


def test_audio_extract_uploads_with_audio_mime(tmp_path):
    provider = FakeProvider()
    result = _run(AudioExtractor(provider, _POLLING, sleep=no_sleep).extract(_file(tmp_path, "talk.mp3")))
    assert provider.uploads[0][1] == "audio/mp3"
    assert "Transcribe" in provider.prompts[0][0]
    assert len(result.chunks) == 2


def test_audio_unsupported_extension(tmp_path):
    provider = FakeProvider()
    with pytest.raises(UnsupportedMediaTypeError):
        _run(AudioExtractor(provider, _POLLING, sleep=no_sleep).extract(_file(tmp_path, "talk.m4a")))
    assert provider.uploads == []


# ------------------------------------------------------------------
# Video transcript
# ------------------------------------------------------------------


def test_transcript_without_provider_returns_raw_single_chunk():
    fetcher = FakeFetcher()
    extractor = TranscriptExtractor(fetcher, FakeProvider(available=False))

    result = _run(extractor.extract("https://www.youtube.com/watch?v=dQw4w9WgXcQ"))

    assert fetcher.requested == ["dQw4w9WgXcQ"]
    assert result.chunks == ["Welcome to the lecture. Today: neural networks."]
    assert result.summary == PLACEHOLDER_SUMMARY
    assert result.chunk_metadata[0].start_time == 0.0
    assert result.chunk_metadata[0].end_time == 5.5
    assert result.source_metadata.duration == 5.5
    assert result.source_metadata.extra["video_id"] == "dQw4w9WgXcQ"


def test_transcript_with_provider_uses_text_prompt():
    provider = FakeProvider(response='{"text": ["Welcome.", "Neural networks."], "summary": "Intro"}')
    extractor = TranscriptExtractor(FakeFetcher(), provider, ChunkerCfg(min_words=250, max_words=900))

    result = _run(extractor.extract("dQw4w9WgXcQ"))

    assert result.chunks == ["Welcome.", "Neural networks."]
    assert result.summary == "Intro"
    prompt, remote = provider.prompts[0]
    assert remote is None
    assert "Welcome to the lecture. Today: neural networks." in prompt
    assert "250-900 words" in prompt
    assert provider.uploads == []


def test_transcript_no_captions():
    fetcher = FakeFetcher(error=NoTranscriptAvailableError("dQw4w9WgXcQ", "TranscriptsDisabled"))
    with pytest.raises(NoTranscriptAvailableError, match="transcript"):
        _run(TranscriptExtractor(fetcher).extract("https://youtu.be/dQw4w9WgXcQ"))


def test_transcript_blank_captions():
    fetcher = FakeFetcher(cues=[CaptionCue(text="  ", start=0.0, duration=1.0)])
    with pytest.raises(NoTranscriptAvailableError):
        _run(TranscriptExtractor(fetcher).extract("dQw4w9WgXcQ"))


def test_transcript_invalid_url_fails_before_fetch():
    fetcher = FakeFetcher()
    with pytest.raises(InvalidArgumentError):
        _run(TranscriptExtractor(fetcher).extract("https://example.com/not-a-video"))
    assert fetcher.requested == []


# ------------------------------------------------------------------
# Plain text
# ------------------------------------------------------------------


def test_plain_text_single_chunk():
    result = _run(PlainTextExtractor().extract("Hello world."))
    assert result.chunks == ["Hello world."]
    assert result.summary == "Hello world."


def test_plain_text_empty_raises():
    with pytest.raises(InvalidArgumentError):
        _run(PlainTextExtractor().extract("   "))


def test_plain_text_with_chunker_splits():
    text = "\n\n".join(["Alpha beta gamma delta."] * 4)
    result = _run(PlainTextExtractor(SemanticChunker(min_words=4, max_words=8)).extract(text))
    assert len(result.chunks) == 4


# ------------------------------------------------------------------
# Dispatcher
# ------------------------------------------------------------------


def _dispatcher(provider=None, fetcher=None) -> ContentExtractor:
    return ContentExtractor(
        provider=provider or FakeProvider(),
        transcripts=fetcher or FakeFetcher(),
        polling=_POLLING,
        sleep=no_sleep,
    )


def test_dispatch_by_alias(tmp_path):
    provider = FakeProvider()
    result = _run(_dispatcher(provider).extract(_pdf(tmp_path), "pdf"))
    assert result.source_metadata.num_pages == 2


def test_dispatch_plain_text():
    result = _run(_dispatcher().extract("Hello world.", SourceKind.PLAIN_TEXT))
    assert result.chunks == ["Hello world."]


def test_dispatch_unknown_kind():
    with pytest.raises(UnsupportedMediaTypeError, match="spreadsheet"):
        _dispatcher().extractor_for("spreadsheet")


def test_validate_is_network_free(tmp_path):
    provider = FakeProvider()
    with pytest.raises(UnsupportedMediaTypeError):
        _dispatcher(provider).validate(_file(tmp_path, "clip.avi"), SourceKind.AUDIO)
    assert provider.uploads == []
