"""Tests for the embedding codec and cosine similarity."""

from __future__ import annotations

import math
import struct

import pytest

from notespace.db.vectors import cosine_similarity, decode, dimensions_of, encode, ensure_dimensions
from notespace.errors import ConsistencyError, DimensionMismatchError, MalformedEmbeddingError


def _f32(values: list[float]) -> list[float]:
    """Round *values* through float32 so comparisons are exact."""
    return list(struct.unpack(f"<{len(values)}f", struct.pack(f"<{len(values)}f", *values)))


# --- encode / decode ---

def test_encode_length_is_four_bytes_per_component():
    assert len(encode([0.1, 0.2, 0.3])) == 12


def test_encode_empty_vector():
    assert encode([]) == b""
    assert decode(b"") == []


def test_encode_is_little_endian_float32_without_header():
    assert encode([1.0]) == b"\x00\x00\x80\x3f"


@pytest.mark.parametrize("vector", [
    [0.0],
    [1.0, -1.0, 0.5, -0.25],
    [3.4028234663852886e38, -1.1754943508222875e-38],
    [0.1, 0.2, 0.3, 0.4, 0.5, 0.6],
])
def test_decode_inverts_encode(vector):
    v = _f32(vector)
    assert decode(encode(v)) == v


def test_decode_1536_dimensions():
    v = _f32([math.sin(i) for i in range(1536)])
    assert decode(encode(v)) == v
    assert dimensions_of(encode(v)) == 1536


@pytest.mark.parametrize("length", [1, 2, 3, 5, 1535])
def test_decode_rejects_non_multiple_of_four(length):
    with pytest.raises(MalformedEmbeddingError):
        decode(b"\x00" * length)


def test_malformed_embedding_is_consistency_error():
    with pytest.raises(ConsistencyError):
        decode(b"\x00\x00\x00")


def test_dimensions_of_rejects_malformed_blob():
    with pytest.raises(MalformedEmbeddingError):
        dimensions_of(b"\x00" * 6)


# --- cosine_similarity ---

def test_similarity_with_itself_is_one():
    v = [0.6, 0.8]
    assert cosine_similarity(v, v) == pytest.approx(1.0)


def test_similarity_with_negation_is_minus_one():
    v = [0.6, 0.8, 0.0]
    assert cosine_similarity(v, [-x for x in v]) == pytest.approx(-1.0)


def test_similarity_orthogonal_is_zero():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_similarity_is_scale_invariant():
    assert cosine_similarity([1.0, 2.0, 3.0], [2.0, 4.0, 6.0]) == pytest.approx(1.0)


def test_similarity_zero_vector_is_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_similarity_unequal_lengths_raises():
    with pytest.raises(DimensionMismatchError) as excinfo:
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
    assert excinfo.value.expected == 2
    assert excinfo.value.actual == 3


# --- ensure_dimensions ---

def test_ensure_dimensions_ok():
    ensure_dimensions([0.0] * 4, 4)  # no exception


def test_ensure_dimensions_mismatch():
    with pytest.raises(DimensionMismatchError, match="expected 1536, got 3"):
        ensure_dimensions([0.0] * 3, 1536)
