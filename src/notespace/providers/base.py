"""Generative-AI provider boundary.

A provider can upload a file, report the file's processing state, and answer
a prompt with JSON shaped ``{"text": [str, ...], "summary": str}``. Responses
are validated strictly: anything else is a ProviderResponseInvalidError, never
a silent single-chunk fallback.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_fixed

from notespace.db.models import ChunkMetadata, SourceMetadata
from notespace.errors import (
    ExternalProcessingFailedError,
    ProcessingTimeoutError,
    ProviderResponseInvalidError,
)

STATE_PROCESSING = "PROCESSING"
STATE_ACTIVE = "ACTIVE"
STATE_FAILED = "FAILED"

# JSON schema handed to the provider alongside every structured request.
PROCESSING_RESULT_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "text": {"type": "array", "items": {"type": "string"}},
        "summary": {"type": "string"},
    },
    "required": ["text", "summary"],
}


@dataclass
class RemoteFile:
    """A file held by the provider, addressed by *name*."""

    name: str
    uri: str
    mime_type: str
    state: str
    display_name: str = ""


@dataclass
class ProcessingResult:
    """Extracted content: ordered chunk texts plus a short summary.

    ``chunk_metadata`` is either empty or parallel to ``chunks``.
    """

    chunks: list[str]
    summary: str
    chunk_metadata: list[ChunkMetadata] = field(default_factory=list)
    source_metadata: SourceMetadata = field(default_factory=SourceMetadata)


class _ProcessingPayload(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore")

    text: list[str]
    summary: str


def parse_processing_result(raw: str | bytes | dict) -> ProcessingResult:
    """Validate a provider response against ``{text: string[], summary: string}``.

    Raises:
        ProviderResponseInvalidError: On invalid JSON or a mismatched shape.
    """
    try:
        if isinstance(raw, dict):
            payload = _ProcessingPayload.model_validate(raw)
        else:
            payload = _ProcessingPayload.model_validate_json(raw)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ProviderResponseInvalidError(
            f"Provider response does not match {{text: string[], summary: string}}: {problems}"
        ) from exc
    return ProcessingResult(chunks=list(payload.text), summary=payload.summary)


class GenerativeProvider(ABC):
    """Abstract AI provider. Implementations must be safe to share per request."""

    @property
    @abstractmethod
    def available(self) -> bool:
        """True when credentials are configured and calls can be attempted."""

    @abstractmethod
    async def upload_file(self, path: Path, mime_type: str) -> RemoteFile:
        """Upload *path* and return the provider's handle for it."""

    @abstractmethod
    async def get_file(self, name: str) -> RemoteFile:
        """Return the current state of an uploaded file."""

    @abstractmethod
    async def generate_json(self, prompt: str, file: RemoteFile | None = None) -> str:
        """Send *prompt* (optionally with *file*) and return the raw JSON text."""


class _StillProcessing(Exception):
    def __init__(self, file: RemoteFile) -> None:
        super().__init__(file.name)
        self.file = file


async def wait_until_active(
    provider: GenerativeProvider,
    file: RemoteFile,
    *,
    interval: float,
    max_attempts: int,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RemoteFile:
    """Poll *file* until it leaves the PROCESSING state.

    At most *max_attempts* state checks, *interval* seconds apart.

    Raises:
        ProcessingTimeoutError: Still PROCESSING after the last check.
        ExternalProcessingFailedError: Any terminal state other than ACTIVE.
    """
    logger.debug("Waiting for {} to become active", file.name)
    current = file
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(interval),
            retry=retry_if_exception_type(_StillProcessing),
            before_sleep=lambda rs: logger.debug(
                "{} still processing (check {}/{})", file.name, rs.attempt_number, max_attempts
            ),
            sleep=sleep,
        ):
            with attempt:
                current = await provider.get_file(file.name)
                if current.state == STATE_PROCESSING:
                    raise _StillProcessing(current)
    except RetryError as exc:
        raise ProcessingTimeoutError(file.name, attempts=max_attempts, interval=interval) from exc

    if current.state != STATE_ACTIVE:
        raise ExternalProcessingFailedError(current.name, current.state)
    logger.debug("{} is active", current.name)
    return current
