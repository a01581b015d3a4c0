"""Base extractor interface for all notespace source kinds.

Every extractor has two steps:

- ``validate()`` — local checks only (extension, MIME type, file presence).
  Runs before any network call so bad input fails fast.
- ``extract()`` — the (possibly remote) work that yields a ProcessingResult.
"""

from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import ClassVar

from loguru import logger

from notespace.config import ChunkerCfg, PollingCfg
from notespace.db.models import SourceKind, SourceMetadata
from notespace.errors import InvalidArgumentError, ProviderUnavailableError, UnsupportedMediaTypeError
from notespace.providers.base import (
    GenerativeProvider,
    ProcessingResult,
    parse_processing_result,
    wait_until_active,
)

# Files API upload ceiling.
MAX_UPLOAD_BYTES = 2 * 1024 * 1024 * 1024

DOCUMENT_TYPES: dict[str, str] = {".pdf": "application/pdf"}
IMAGE_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}
AUDIO_TYPES: dict[str, str] = {
    ".mp3": "audio/mp3",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".aac": "audio/aac",
    ".aiff": "audio/aiff",
}
# MIME aliases browsers commonly send for the same formats.
_MIME_ALIASES: dict[str, str] = {
    "audio/mpeg": "audio/mp3",
    "audio/x-wav": "audio/wav",
    "audio/wave": "audio/wav",
    "image/jpg": "image/jpeg",
}


def resolve_mime_type(path: str | Path, accepted: dict[str, str], label: str, mime_type: str | None = None) -> str:
    """Return the MIME type for *path*, or raise UnsupportedMediaTypeError.

    When *mime_type* is given it must be one of the accepted types and agree
    with the file extension.
    """
    ext = Path(path).suffix.lower()
    if ext not in accepted:
        raise UnsupportedMediaTypeError(
            f"Unsupported {label} format '{ext or '<none>'}'. "
            f"Supported: {', '.join(sorted(accepted))}"
        )
    expected = accepted[ext]
    if mime_type is not None:
        declared = _MIME_ALIASES.get(mime_type.lower(), mime_type.lower())
        if declared != expected:
            raise UnsupportedMediaTypeError(
                f"MIME type '{mime_type}' does not match {label} extension '{ext}' (expected '{expected}')."
            )
    return expected


def check_file(path: str | Path) -> Path:
    """Raise InvalidArgumentError unless *path* is a readable file within the upload limit."""
    p = Path(path)
    try:
        size = os.path.getsize(p)
    except OSError as exc:
        raise InvalidArgumentError(f"Cannot access file '{path}': {exc}") from exc
    if not p.is_file():
        raise InvalidArgumentError(f"Not a file: '{path}'")
    if size == 0:
        raise InvalidArgumentError(f"File '{path}' is empty.")
    if size > MAX_UPLOAD_BYTES:
        raise InvalidArgumentError(
            f"File '{path}' exceeds the 2 GB upload limit ({size / (1024 ** 3):.1f} GB)."
        )
    return p


class BaseExtractor(ABC):
    """Abstract base for all extractors."""

    kind: ClassVar[SourceKind]

    @abstractmethod
    def validate(self, source: str | Path, mime_type: str | None = None) -> None:
        """Local, network-free validation of *source*."""

    @abstractmethod
    async def extract(self, source: str | Path, mime_type: str | None = None) -> ProcessingResult:
        """Produce chunks + summary for *source*. Calls ``validate()`` first."""


class ProviderFileExtractor(BaseExtractor):
    """Upload → wait until active → structured generation → strict parse.

    Subclasses set ``accepted_types``, ``label`` and ``prompt_template``
    (formatted with ``min_words`` / ``max_words``).
    """

    accepted_types: ClassVar[dict[str, str]]
    label: ClassVar[str]
    prompt_template: ClassVar[str]

    def __init__(
        self,
        provider: GenerativeProvider,
        polling: PollingCfg | None = None,
        chunker: ChunkerCfg | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._polling = polling or PollingCfg()
        self._chunker = chunker or ChunkerCfg()
        self._sleep = sleep

    def validate(self, source: str | Path, mime_type: str | None = None) -> None:
        resolve_mime_type(source, self.accepted_types, self.label, mime_type)
        check_file(source)

    def prompt(self) -> str:
        return self.prompt_template.format(
            min_words=self._chunker.min_words, max_words=self._chunker.max_words
        )

    def source_metadata(self, path: Path) -> SourceMetadata:
        """Hook for per-kind local metadata (page counts, ...)."""
        return SourceMetadata()

    async def extract(self, source: str | Path, mime_type: str | None = None) -> ProcessingResult:
        self.validate(source, mime_type)
        path = Path(source)
        resolved = resolve_mime_type(path, self.accepted_types, self.label, mime_type)
        metadata = self.source_metadata(path)

        if not self._provider.available:
            raise ProviderUnavailableError(
                f"Cannot process {self.label} '{path.name}': no AI provider key configured."
            )

        remote = await self._provider.upload_file(path, resolved)
        remote = await wait_until_active(
            self._provider,
            remote,
            interval=self._polling.interval_seconds,
            max_attempts=self._polling.max_attempts,
            sleep=self._sleep,
        )
        raw = await self._provider.generate_json(self.prompt(), file=remote)
        result = parse_processing_result(raw)
        result.source_metadata = metadata
        logger.info("Extracted {} chunks from {} '{}'", len(result.chunks), self.label, path.name)
        return result
