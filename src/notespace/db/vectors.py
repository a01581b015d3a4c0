"""Embedding codec — raw little-endian float32 blobs and cosine similarity.

A stored embedding is ``4 * len(vector)`` bytes with no header. The
dimensionality is tracked out-of-band (``EmbeddingCfg.dimensions``), so every
blob in the corpus must have the same length; that is checked by
``ensure_dimensions()`` when an embedding is produced, not when it is compared.

sqlite-vec reads the same layout, which lets the repository rank chunks with
``vec_distance_cosine()`` directly on the ``chunks.embedding`` column.
"""

from __future__ import annotations

import math
import struct
from collections.abc import Sequence

from notespace.errors import DimensionMismatchError, MalformedEmbeddingError

_FLOAT32_BYTES = 4


def encode(vector: Sequence[float]) -> bytes:
    """Pack *vector* as little-endian IEEE-754 float32 values."""
    return struct.pack(f"<{len(vector)}f", *vector)


def decode(blob: bytes) -> list[float]:
    """Inverse of ``encode()``.

    Raises:
        MalformedEmbeddingError: If ``len(blob)`` is not a multiple of 4.
    """
    if len(blob) % _FLOAT32_BYTES:
        raise MalformedEmbeddingError(
            f"Embedding blob length {len(blob)} is not a multiple of {_FLOAT32_BYTES}."
        )
    return list(struct.unpack(f"<{len(blob) // _FLOAT32_BYTES}f", blob))


def dimensions_of(blob: bytes) -> int:
    """Number of float32 components in an encoded blob."""
    if len(blob) % _FLOAT32_BYTES:
        raise MalformedEmbeddingError(
            f"Embedding blob length {len(blob)} is not a multiple of {_FLOAT32_BYTES}."
        )
    return len(blob) // _FLOAT32_BYTES


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(expected=len(a), actual=len(b))
    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def ensure_dimensions(vector: Sequence[float], dimensions: int) -> None:
    """Raise DimensionMismatchError unless *vector* has exactly *dimensions* components."""
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")
    if len(vector) != dimensions:
        raise DimensionMismatchError(expected=dimensions, actual=len(vector))
