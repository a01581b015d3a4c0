"""Tests for the LiteLLM embedding client."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from notespace.errors import DimensionMismatchError, ProviderError, ProviderUnavailableError
from notespace.rag.llm_client import Embedder, embed, validate_api_key


def _response(vector: list[float]) -> MagicMock:
    response = MagicMock()
    response.data = [{"embedding": vector}]
    return response


# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ProviderUnavailableError, match="OPENAI_API_KEY"):
        validate_api_key("openai/text-embedding-3-small")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/text-embedding-3-small")  # should not raise


def test_validate_api_key_gemini(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with pytest.raises(ProviderUnavailableError, match="GEMINI_API_KEY"):
        validate_api_key("gemini/text-embedding-004")


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/nomic-embed-text")


def test_validate_api_key_bare_model_treated_as_openai(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ProviderUnavailableError):
        validate_api_key("text-embedding-3-small")


# ------------------------------------------------------------------
# embed()
# ------------------------------------------------------------------


def test_embed_returns_vector():
    with patch("notespace.rag.llm_client.litellm.aembedding", new=AsyncMock(return_value=_response([0.1, 0.2]))):
        assert asyncio.run(embed("openai/text-embedding-3-small", "hi")) == [0.1, 0.2]


def test_embed_passes_params_to_litellm():
    mock = AsyncMock(return_value=_response([0.1]))
    with patch("notespace.rag.llm_client.litellm.aembedding", new=mock):
        asyncio.run(embed("openai/text-embedding-3-small", "hello", num_retries=5))
    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == "openai/text-embedding-3-small"
    assert kwargs["input"] == ["hello"]
    assert kwargs["num_retries"] == 5


def test_embed_empty_response_raises():
    response = MagicMock()
    response.data = []
    with patch("notespace.rag.llm_client.litellm.aembedding", new=AsyncMock(return_value=response)):
        with pytest.raises(ProviderError, match="no vectors"):
            asyncio.run(embed("openai/text-embedding-3-small", "hi"))


# ------------------------------------------------------------------
# Embedder
# ------------------------------------------------------------------


def test_embedder_enforces_dimensions():
    embedder = Embedder(model="openai/text-embedding-3-small", dimensions=3)
    with patch("notespace.rag.llm_client.litellm.aembedding", new=AsyncMock(return_value=_response([0.1, 0.2]))):
        with pytest.raises(DimensionMismatchError, match="expected 3, got 2"):
            asyncio.run(embedder.embed("hi"))


def test_embedder_truncates_long_input():
    mock = AsyncMock(return_value=_response([0.0, 0.0]))
    with patch("notespace.rag.llm_client.litellm.aembedding", new=mock):
        asyncio.run(Embedder(dimensions=2).embed("x" * 20000))
    assert len(mock.call_args.kwargs["input"][0]) == 8000


def test_embedder_rejects_bad_dimensions():
    with pytest.raises(ValueError):
        Embedder(dimensions=0)
