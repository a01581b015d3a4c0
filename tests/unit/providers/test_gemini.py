"""Tests for GeminiProvider with a mocked google-genai client."""

from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import types

from notespace.errors import ProviderError, ProviderUnavailableError
from notespace.providers.base import PROCESSING_RESULT_SCHEMA, RemoteFile
from notespace.providers.gemini import GeminiProvider


def _genai_file(state=types.FileState.PROCESSING) -> SimpleNamespace:
    return SimpleNamespace(
        name="files/abc123",
        uri="https://generativelanguage.googleapis.com/v1beta/files/abc123",
        mime_type="application/pdf",
        state=state,
        display_name="paper.pdf",
    )


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.aio.files.upload = AsyncMock(return_value=_genai_file())
    client.aio.files.get = AsyncMock(return_value=_genai_file(types.FileState.ACTIVE))
    client.aio.models.generate_content = AsyncMock(
        return_value=SimpleNamespace(text='{"text": ["a"], "summary": "s"}')
    )
    return client


# ------------------------------------------------------------------
# Availability
# ------------------------------------------------------------------


def test_available_with_env_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    assert GeminiProvider().available is True


def test_google_api_key_fallback(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
    assert GeminiProvider().available is True


def test_unavailable_without_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    provider = GeminiProvider()
    assert provider.available is False
    with pytest.raises(ProviderUnavailableError, match="GEMINI_API_KEY"):
        asyncio.run(provider.generate_json("hi"))


# ------------------------------------------------------------------
# Files API
# ------------------------------------------------------------------


def test_upload_maps_file(client, tmp_path):
    path = tmp_path / "paper.pdf"
    path.write_bytes(b"%PDF-1.4")
    remote = asyncio.run(GeminiProvider(client=client).upload_file(path, "application/pdf"))

    assert remote == RemoteFile(
        name="files/abc123",
        uri="https://generativelanguage.googleapis.com/v1beta/files/abc123",
        mime_type="application/pdf",
        state="PROCESSING",
        display_name="paper.pdf",
    )
    config = client.aio.files.upload.call_args.kwargs["config"]
    assert config.mime_type == "application/pdf"
    assert config.display_name == "paper.pdf"


def test_upload_failure_is_provider_error(client):
    client.aio.files.upload.side_effect = RuntimeError("quota exceeded")
    with pytest.raises(ProviderError, match="quota exceeded"):
        asyncio.run(GeminiProvider(client=client).upload_file(Path("paper.pdf"), "application/pdf"))


def test_get_file_reports_state(client):
    remote = asyncio.run(GeminiProvider(client=client).get_file("files/abc123"))
    assert remote.state == "ACTIVE"
    client.aio.files.get.assert_awaited_once_with(name="files/abc123")


def test_missing_state_treated_as_active(client):
    client.aio.files.get.return_value = _genai_file(state=None)
    assert asyncio.run(GeminiProvider(client=client).get_file("files/abc123")).state == "ACTIVE"


# ------------------------------------------------------------------
# Generation
# ------------------------------------------------------------------


def test_generate_json_text_only(client):
    provider = GeminiProvider(model="gemini-test", temperature=0.1, client=client)
    raw = asyncio.run(provider.generate_json("Chunk this."))

    assert raw == '{"text": ["a"], "summary": "s"}'
    kwargs = client.aio.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-test"
    assert kwargs["contents"] == ["Chunk this."]
    assert kwargs["config"].response_mime_type == "application/json"
    assert kwargs["config"].temperature == 0.1


def test_generate_json_with_file_sends_uri_part(client):
    remote = RemoteFile(name="files/abc123", uri="https://files/abc123", mime_type="application/pdf", state="ACTIVE")
    asyncio.run(GeminiProvider(client=client).generate_json("OCR this.", file=remote))

    contents = client.aio.models.generate_content.call_args.kwargs["contents"]
    assert len(contents) == 2
    assert contents[0].file_data.file_uri == "https://files/abc123"
    assert contents[1] == "OCR this."


def test_generate_json_empty_text(client):
    client.aio.models.generate_content.return_value = SimpleNamespace(text=None)
    assert asyncio.run(GeminiProvider(client=client).generate_json("hi")) == ""


def test_generate_failure_is_provider_error(client):
    client.aio.models.generate_content.side_effect = RuntimeError("503")
    with pytest.raises(ProviderError, match="Gemini generation failed"):
        asyncio.run(GeminiProvider(client=client).generate_json("hi"))


def test_schema_requires_text_and_summary():
    assert PROCESSING_RESULT_SCHEMA["required"] == ["text", "summary"]
