"""Notespace exception hierarchy.

Four families, matching how callers react to them:

  InputError        reported immediately, no external call made, never retried
  ProviderError     external AI / transcript failure; whole ingestion is safe to retry
  StorageError      transaction or integrity failure; nothing partial survives
  ConsistencyError  embedding shape violations; never coerced

The ingestion orchestrator catches all of these and turns them into an
``IngestionResult``; everything else lets them propagate.
"""

from __future__ import annotations


class NotespaceError(Exception):
    """Base class for every error raised by notespace."""


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class InputError(NotespaceError):
    """The caller supplied something we cannot work with."""


class UnsupportedMediaTypeError(InputError):
    """The extension / MIME type is not accepted for the requested source kind."""


class MissingFieldError(InputError):
    """A field required for this source kind was not supplied."""

    def __init__(self, field: str, kind: str | None = None) -> None:
        self.field = field
        self.kind = kind
        suffix = f" for '{kind}' sources" if kind else ""
        super().__init__(f"Missing required field '{field}'{suffix}.")


class InvalidArgumentError(InputError, ValueError):
    """An argument is outside its accepted range."""


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------


class ProviderError(NotespaceError):
    """The generative-AI provider or transcript service failed."""


class ProviderUnavailableError(ProviderError):
    """No API key is configured for the provider."""


class ProviderResponseInvalidError(ProviderError):
    """The provider response does not match ``{text: string[], summary: string}``."""


class ExternalProcessingFailedError(ProviderError):
    """An uploaded resource ended in a failed processing state."""

    def __init__(self, resource: str, state: str | None = None, message: str | None = None) -> None:
        self.resource = resource
        self.state = state
        super().__init__(
            message or f"Resource '{resource}' failed to process with state: {state or 'unknown'}"
        )


class ProcessingTimeoutError(ExternalProcessingFailedError):
    """Polling gave up before the resource became active."""

    def __init__(self, resource: str, attempts: int, interval: float) -> None:
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            resource,
            state="PROCESSING",
            message=(
                f"Resource '{resource}' was still processing after {attempts} checks "
                f"({attempts * interval:.0f}s). Try again later."
            ),
        )


class NoTranscriptAvailableError(ProviderError):
    """The video has no caption track."""

    def __init__(self, video_id: str, reason: str | None = None) -> None:
        self.video_id = video_id
        detail = f": {reason}" if reason else ""
        super().__init__(f"No transcript available for video '{video_id}'{detail}")


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------


class StorageError(NotespaceError):
    """A database write or transaction failed."""


# ---------------------------------------------------------------------------
# Consistency errors
# ---------------------------------------------------------------------------


class ConsistencyError(NotespaceError):
    """Stored or computed embeddings violate a corpus-wide invariant."""


class MalformedEmbeddingError(ConsistencyError, ValueError):
    """An embedding blob's byte length is not a multiple of 4."""


class DimensionMismatchError(ConsistencyError, ValueError):
    """Two vectors (or a vector and the configured dimensionality) differ in length."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")
