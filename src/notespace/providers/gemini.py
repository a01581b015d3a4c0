"""Gemini provider via the google-genai SDK (async client).

Files are uploaded through the Files API and referenced by URI in the
generation request; structured output is requested with
``response_mime_type="application/json"`` plus the processing-result schema.
"""

from __future__ import annotations

import os
from pathlib import Path

from google import genai
from google.genai import types
from loguru import logger

from notespace.errors import ProviderError, ProviderUnavailableError
from notespace.providers.base import (
    PROCESSING_RESULT_SCHEMA,
    STATE_ACTIVE,
    GenerativeProvider,
    RemoteFile,
)

_API_KEY_ENV = ("GEMINI_API_KEY", "GOOGLE_API_KEY")
_DEFAULT_MODEL = "gemini-2.0-flash"


def _api_key_from_env() -> str | None:
    for name in _API_KEY_ENV:
        if value := os.environ.get(name):
            return value
    return None


class GeminiProvider(GenerativeProvider):
    """Gemini-backed provider.

    Args:
        model: Gemini model id used for generation.
        api_key: Explicit key; falls back to GEMINI_API_KEY / GOOGLE_API_KEY.
        temperature: Sampling temperature for generation.
        max_output_tokens: Output token cap per request.
        client: Pre-built ``genai.Client`` (tests / custom transport).
    """

    def __init__(
        self,
        model: str = _DEFAULT_MODEL,
        api_key: str | None = None,
        temperature: float = 0.3,
        max_output_tokens: int = 8192,
        client: genai.Client | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._api_key = api_key or _api_key_from_env()
        self._client = client

    @property
    def available(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise ProviderUnavailableError(
                    "No Gemini API key found. Set the GEMINI_API_KEY environment variable."
                )
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def upload_file(self, path: Path, mime_type: str) -> RemoteFile:
        client = self._get_client()
        try:
            uploaded = await client.aio.files.upload(
                file=str(path),
                config=types.UploadFileConfig(mime_type=mime_type, display_name=Path(path).name),
            )
        except Exception as exc:
            raise ProviderError(f"Failed to upload '{Path(path).name}' to Gemini: {exc}") from exc
        remote = _to_remote(uploaded)
        logger.info("Uploaded {} as {}", remote.display_name or path, remote.name)
        return remote

    async def get_file(self, name: str) -> RemoteFile:
        client = self._get_client()
        try:
            return _to_remote(await client.aio.files.get(name=name))
        except Exception as exc:
            raise ProviderError(f"Failed to read state of Gemini file '{name}': {exc}") from exc

    async def generate_json(self, prompt: str, file: RemoteFile | None = None) -> str:
        client = self._get_client()
        contents: list = []
        if file is not None:
            contents.append(types.Part.from_uri(file_uri=file.uri, mime_type=file.mime_type))
        contents.append(prompt)

        config = types.GenerateContentConfig(
            temperature=self.temperature,
            top_p=0.95,
            top_k=40,
            max_output_tokens=self.max_output_tokens,
            response_mime_type="application/json",
            response_schema=PROCESSING_RESULT_SCHEMA,
        )
        try:
            response = await client.aio.models.generate_content(
                model=self.model, contents=contents, config=config
            )
        except Exception as exc:
            raise ProviderError(f"Gemini generation failed: {exc}") from exc
        return response.text or ""


def _to_remote(file: types.File) -> RemoteFile:
    state = file.state
    if state is None:
        state_name = STATE_ACTIVE
    else:
        state_name = getattr(state, "value", None) or str(state)
    return RemoteFile(
        name=file.name or "",
        uri=file.uri or "",
        mime_type=file.mime_type or "",
        state=str(state_name),
        display_name=file.display_name or "",
    )
