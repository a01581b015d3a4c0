"""Shared pytest fixtures and in-process fakes for the external services."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest
from loguru import logger

from notespace.db.connection import Database
from notespace.db.models import Space
from notespace.db.repository import Repository
from notespace.db.schema import initialize
from notespace.db.vectors import ensure_dimensions
from notespace.providers.base import STATE_ACTIVE, GenerativeProvider, RemoteFile
from notespace.providers.transcripts import CaptionCue, TranscriptFetcher
from notespace.rag.llm_client import Embedder

FAKE_EMBED_MODEL = "fake/embed-4"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeProvider(GenerativeProvider):
    """Records every call; returns *states* from get_file() in order (last one repeats)."""

    def __init__(
        self,
        response: str | Exception = '{"text": ["First chunk.", "Second chunk."], "summary": "A summary."}',
        states: tuple[str, ...] = (STATE_ACTIVE,),
        available: bool = True,
    ) -> None:
        self.response = response
        self.states = list(states)
        self._available = available
        self.uploads: list[tuple[Path, str]] = []
        self.prompts: list[tuple[str, RemoteFile | None]] = []
        self.polls = 0

    @property
    def available(self) -> bool:
        return self._available

    async def upload_file(self, path: Path, mime_type: str) -> RemoteFile:
        self.uploads.append((Path(path), mime_type))
        return RemoteFile(
            name="files/fake-1",
            uri="https://files.example.test/fake-1",
            mime_type=mime_type,
            state="PROCESSING",
            display_name=Path(path).name,
        )

    async def get_file(self, name: str) -> RemoteFile:
        self.polls += 1
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        return RemoteFile(name=name, uri="https://files.example.test/fake-1", mime_type="", state=state)

    async def generate_json(self, prompt: str, file: RemoteFile | None = None) -> str:
        self.prompts.append((prompt, file))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class FakeFetcher(TranscriptFetcher):
    """Returns fixed cues, or raises *error*."""

    def __init__(self, cues: list[CaptionCue] | None = None, error: Exception | None = None) -> None:
        self.cues = cues if cues is not None else [
            CaptionCue(text="Welcome to  the\nlecture.", start=0.0, duration=2.5),
            CaptionCue(text="Today: neural networks.", start=2.5, duration=3.0),
        ]
        self.error = error
        self.requested: list[str] = []

    async def fetch(self, video_id: str) -> list[CaptionCue]:
        self.requested.append(video_id)
        if self.error is not None:
            raise self.error
        return list(self.cues)


def hash_vector(text: str, dimensions: int = 4) -> list[float]:
    """Deterministic, non-zero vector derived from *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [digest[i] / 255.0 + 0.01 for i in range(dimensions)]


class FakeEmbedder(Embedder):
    """Embedder that never touches the network.

    Known texts map to fixed vectors; anything else gets ``hash_vector()``.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        dimensions: int = 4,
        model: str = FAKE_EMBED_MODEL,
    ) -> None:
        super().__init__(model=model, dimensions=dimensions)
        self.vectors = dict(vectors or {})
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = self.vectors.get(text) or hash_vector(text, self.dimensions)
        ensure_dimensions(vector, self.dimensions)
        return vector


async def no_sleep(seconds: float) -> None:
    return None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "notespace.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db) -> Repository:
    return Repository(tmp_db)


@pytest.fixture
def space(repo: Repository) -> Space:
    return repo.add_space(Space(id="space-1", user_id="user-1", name="Research"))


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def cli_workspace(tmp_path, monkeypatch):
    """Isolated CWD for CLI runs: no global config, no provider keys."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("notespace.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global-config.yaml")
    for var in (
        "NOTESPACE_EMBEDDING_MODEL",
        "NOTESPACE_PROVIDER_MODEL",
        "NOTESPACE_LOG_LEVEL",
        "NOTESPACE_DB",
        "OPENAI_API_KEY",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)
    yield tmp_path
    # The CLI points loguru at the runner's stderr, which is closed afterwards.
    logger.remove()
