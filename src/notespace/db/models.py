"""Domain models for the notespace database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class SourceKind(str, Enum):
    """Kind of ingested content. Immutable once the Source exists."""

    DOCUMENT = "document"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO_TRANSCRIPT = "video-transcript"
    PLAIN_TEXT = "plain-text"
    WEB_LINK = "web-link"

    @classmethod
    def parse(cls, value: str | SourceKind) -> SourceKind:
        """Accept enum members, canonical values, and the legacy short names."""
        if isinstance(value, SourceKind):
            return value
        normalized = value.strip().lower()
        normalized = _KIND_ALIASES.get(normalized, normalized)
        return cls(normalized)


_KIND_ALIASES = {
    "pdf": "document",
    "youtube": "video-transcript",
    "video": "video-transcript",
    "text": "plain-text",
    "note": "plain-text",
    "link": "web-link",
    "web": "web-link",
}


# ---------------------------------------------------------------------------
# Metadata: documented fields + escape-hatch map
# ---------------------------------------------------------------------------


class _Metadata:
    """Shared (de)serialisation for the typed metadata bags.

    Known fields live on the dataclass; anything else round-trips through
    ``extra`` so older / newer writers don't lose data.
    """

    extra: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is not None:
                out[f.name] = value
        out.update(self.extra)
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None):
        data = dict(data or {})
        known = {f.name for f in fields(cls) if f.name != "extra"}  # type: ignore[arg-type]
        kwargs = {k: data.pop(k) for k in list(data) if k in known}
        return cls(**kwargs, extra=data)

    @classmethod
    def from_json(cls, raw: str | None):
        return cls.from_dict(json.loads(raw) if raw else {})


@dataclass
class ChunkMetadata(_Metadata):
    """Per-chunk metadata. Times are seconds from the start of the media."""

    position: int | None = None
    page: int | None = None
    start_time: float | None = None
    end_time: float | None = None
    section: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class SourceMetadata(_Metadata):
    """Provider-specific source metadata (page counts, durations, ...)."""

    num_pages: int | None = None
    duration: float | None = None
    author: str | None = None
    published_date: str | None = None
    thumbnail: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class Space:
    id: str
    user_id: str
    name: str
    description: str | None = None
    icon: str | None = None
    backdrop: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Note:
    id: str
    space_id: str
    user_id: str
    title: str
    content: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Source:
    id: str
    space_id: str
    user_id: str
    title: str
    kind: SourceKind
    description: str | None = None
    url: str | None = None
    file_path: str | None = None
    tags: list[str] = field(default_factory=list)
    metadata: SourceMetadata = field(default_factory=SourceMetadata)
    created_at: str | None = None


@dataclass
class Chunk:
    source_id: str
    chunk_index: int
    content: str
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)
    tags: list[str] = field(default_factory=list)
    embedding: bytes | None = None  # raw float32 blob, see db.vectors
    embedding_model: str | None = None
    id: str | None = None  # set on insert
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Chat:
    id: str
    space_id: str
    title: str = ""
    created_at: str | None = None


@dataclass
class ChatMessage:
    id: str
    chat_id: str
    role: str
    content: str
    created_at: str | None = None


@dataclass
class Citation:
    """Scored weak link from a chat message to a supporting chunk."""

    message_id: str
    chunk_id: str
    score: float
    id: str | None = None
    created_at: str | None = None
