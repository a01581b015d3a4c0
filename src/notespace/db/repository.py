"""Repository pattern for all notespace database operations.

Single interface for: spaces, notes, sources, chunks, embeddings, chats and
citations. Multi-row writes go through ``transaction()`` so a Source and its
Chunks are committed together or not at all.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from loguru import logger

from notespace.db.models import (
    Chat,
    ChatMessage,
    Chunk,
    ChunkMetadata,
    Citation,
    Note,
    Source,
    SourceKind,
    SourceMetadata,
    Space,
)
from notespace.errors import ConsistencyError, InvalidArgumentError, StorageError

_SOURCE_COLUMNS = (
    "id, space_id, user_id, title, description, kind, url, file_path, tags, metadata, created_at"
)
_CHUNK_COLUMNS = (
    "id, source_id, chunk_index, content, metadata, tags, embedding, embedding_model, "
    "created_at, updated_at"
)

# Source fields that may change after creation; kind/url/file_path are fixed.
_MUTABLE_SOURCE_FIELDS = frozenset({"title", "description", "tags", "metadata"})
_MUTABLE_SPACE_FIELDS = frozenset({"name", "description", "icon", "backdrop", "tags"})
_MUTABLE_NOTE_FIELDS = frozenset({"title", "content", "tags"})


def new_id() -> str:
    return str(uuid.uuid4())


class Repository:
    """Data access layer for all notespace entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see notespace.db.schema.initialize).
        """
        self._conn = conn

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on any error.

        ``sqlite3.Error`` is re-raised as StorageError; other exceptions
        (including cancellation) propagate unchanged after the rollback.
        """
        try:
            yield self._conn
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            logger.warning("Transaction rolled back: {}", exc)
            raise StorageError(f"Database write failed: {exc}") from exc
        except BaseException:
            self._conn.rollback()
            logger.warning("Transaction rolled back after interruption")
            raise

    # ------------------------------------------------------------------
    # Spaces
    # ------------------------------------------------------------------

    def add_space(self, space: Space) -> Space:
        """Insert a new space. The name must be non-empty."""
        if not space.name or not space.name.strip():
            raise InvalidArgumentError("Space name must not be empty.")
        with self.transaction():
            self._conn.execute(
                """
                INSERT INTO spaces (id, user_id, name, description, icon, backdrop, tags)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    space.id,
                    space.user_id,
                    space.name.strip(),
                    space.description,
                    space.icon,
                    space.backdrop,
                    json.dumps(space.tags),
                ),
            )
        return self.get_space(space.id)  # type: ignore[return-value]

    def get_space(self, space_id: str) -> Space | None:
        row = self._conn.execute("SELECT * FROM spaces WHERE id = ?", (space_id,)).fetchone()
        return _row_to_space(row) if row else None

    def list_spaces(self, user_id: str | None = None) -> list[Space]:
        """Return spaces, newest first, optionally restricted to one owner."""
        if user_id is None:
            rows = self._conn.execute("SELECT * FROM spaces ORDER BY created_at DESC").fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM spaces WHERE user_id = ? ORDER BY created_at DESC", (user_id,)
            ).fetchall()
        return [_row_to_space(r) for r in rows]

    def update_space(self, space_id: str, **changes: Any) -> Space | None:
        if "name" in changes and not str(changes["name"] or "").strip():
            raise InvalidArgumentError("Space name must not be empty.")
        self._update("spaces", space_id, changes, _MUTABLE_SPACE_FIELDS, touch=True)
        return self.get_space(space_id)

    def delete_space(self, space_id: str) -> bool:
        """Delete a space; notes, sources, chunks and chats cascade."""
        with self.transaction():
            cur = self._conn.execute("DELETE FROM spaces WHERE id = ?", (space_id,))
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def add_note(self, note: Note) -> Note:
        with self.transaction():
            self._conn.execute(
                """
                INSERT INTO notes (id, space_id, user_id, title, content, tags)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (note.id, note.space_id, note.user_id, note.title, note.content, json.dumps(note.tags)),
            )
        return self.get_note(note.id)  # type: ignore[return-value]

    def get_note(self, note_id: str) -> Note | None:
        row = self._conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
        return _row_to_note(row) if row else None

    def list_notes(self, space_id: str) -> list[Note]:
        rows = self._conn.execute(
            "SELECT * FROM notes WHERE space_id = ? ORDER BY created_at DESC", (space_id,)
        ).fetchall()
        return [_row_to_note(r) for r in rows]

    def update_note(self, note_id: str, **changes: Any) -> Note | None:
        self._update("notes", note_id, changes, _MUTABLE_NOTE_FIELDS, touch=True)
        return self.get_note(note_id)

    def delete_note(self, note_id: str) -> bool:
        with self.transaction():
            cur = self._conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def create_source_with_chunks(self, source: Source, chunks: Sequence[Chunk]) -> list[str]:
        """Insert *source* and all of its *chunks* in one transaction.

        Returns the new chunk ids in insertion order. On any failure nothing
        is written: there is never a Source row without its Chunks.
        """
        if not chunks:
            raise ConsistencyError(f"Source '{source.id}' has no chunks to store.")
        with self.transaction():
            self._insert_source(source)
            ids = [self._insert_chunk(c) for c in chunks]
        logger.debug("Committed source {} with {} chunks", source.id, len(ids))
        return ids

    def get_source(self, source_id: str) -> Source | None:
        row = self._conn.execute(
            f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE id = ?", (source_id,)
        ).fetchone()
        return _row_to_source(row) if row else None

    def find_sources_by_title(self, title: str, space_id: str | None = None) -> list[Source]:
        sql = f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE title = ?"
        params: list[Any] = [title]
        if space_id is not None:
            sql += " AND space_id = ?"
            params.append(space_id)
        return [_row_to_source(r) for r in self._conn.execute(sql, params).fetchall()]

    def list_sources(self, space_id: str | None = None) -> list[Source]:
        """Return sources newest first, optionally scoped to a space."""
        if space_id is None:
            rows = self._conn.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM sources ORDER BY created_at DESC"
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE space_id = ? ORDER BY created_at DESC",
                (space_id,),
            ).fetchall()
        return [_row_to_source(r) for r in rows]

    def update_source(self, source_id: str, **changes: Any) -> Source | None:
        """Update mutable source fields. ``kind``, ``url`` and ``file_path`` are fixed."""
        frozen = set(changes) & {"kind", "url", "file_path"}
        if frozen:
            raise InvalidArgumentError(
                f"Source field(s) {', '.join(sorted(frozen))} cannot change after creation."
            )
        if isinstance(changes.get("metadata"), SourceMetadata):
            changes["metadata"] = changes["metadata"].to_dict()
        self._update("sources", source_id, changes, _MUTABLE_SOURCE_FIELDS, touch=False)
        return self.get_source(source_id)

    def delete_source(self, source_id: str) -> bool:
        """Delete a source; its chunks (and their citations) cascade."""
        with self.transaction():
            cur = self._conn.execute("DELETE FROM sources WHERE id = ?", (source_id,))
        return cur.rowcount > 0

    def count_sources(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM sources").fetchone()[0]

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE id = ?", (chunk_id,)
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def list_chunks(self, source_id: str) -> list[Chunk]:
        """Chunks of *source_id* in ordinal order."""
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE source_id = ? ORDER BY chunk_index",
            (source_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks_by_source(self, source_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE source_id = ?", (source_id,)
        ).fetchone()[0]

    def replace_chunks(self, source_id: str, chunks: Sequence[Chunk]) -> list[str]:
        """Swap the full chunk set of *source_id* in one transaction.

        Callers must not run two replacements for the same source concurrently.
        """
        if not chunks:
            raise ConsistencyError(f"Source '{source_id}' would be left without chunks.")
        with self.transaction():
            self._conn.execute("DELETE FROM chunks WHERE source_id = ?", (source_id,))
            ids = [self._insert_chunk(c) for c in chunks]
        return ids

    def update_chunk_content(self, chunk_id: str, content: str) -> Chunk | None:
        """Replace chunk text and clear its embedding so it is re-embedded."""
        if not content.strip():
            raise InvalidArgumentError("Chunk content must not be empty.")
        with self.transaction():
            self._conn.execute(
                """
                UPDATE chunks
                SET content = ?, embedding = NULL, embedding_model = NULL,
                    updated_at = strftime('%Y-%m-%d %H:%M:%f', 'now')
                WHERE id = ?
                """,
                (content, chunk_id),
            )
        return self.get_chunk(chunk_id)

    def set_embedding(self, chunk_id: str, embedding: bytes, model: str) -> None:
        with self.transaction():
            self._conn.execute(
                "UPDATE chunks SET embedding = ?, embedding_model = ? WHERE id = ?",
                (embedding, model, chunk_id),
            )

    def list_chunks_needing_embedding(
        self, model: str, source_id: str | None = None, limit: int | None = None
    ) -> list[Chunk]:
        """Chunks with no embedding, or one produced by a different model."""
        sql = (
            f"SELECT {_CHUNK_COLUMNS} FROM chunks "
            "WHERE (embedding IS NULL OR embedding_model IS NULL OR embedding_model != ?)"
        )
        params: list[Any] = [model]
        if source_id is not None:
            sql += " AND source_id = ?"
            params.append(source_id)
        sql += " ORDER BY created_at, chunk_index"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [_row_to_chunk(r) for r in self._conn.execute(sql, params).fetchall()]

    def embedding_model_counts(self) -> dict[str, int]:
        """Number of embedded chunks per embedding model."""
        rows = self._conn.execute(
            "SELECT embedding_model, COUNT(*) AS n FROM chunks "
            "WHERE embedding IS NOT NULL AND embedding_model IS NOT NULL "
            "GROUP BY embedding_model ORDER BY embedding_model"
        ).fetchall()
        return {r["embedding_model"]: r["n"] for r in rows}

    def delete_chunk(self, chunk_id: str) -> bool:
        with self.transaction():
            cur = self._conn.execute("DELETE FROM chunks WHERE id = ?", (chunk_id,))
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Similarity search
    # ------------------------------------------------------------------

    def search_similar(
        self,
        query_embedding: bytes,
        model: str,
        space_id: str | None = None,
        limit: int = 5,
    ) -> list[tuple[Chunk, float]]:
        """Rank embedded chunks by cosine similarity to *query_embedding*.

        Only chunks embedded with *model* are candidates. Ties go to the most
        recently created chunk.
        """
        sql = f"""
            SELECT {", ".join("c." + col.strip() for col in _CHUNK_COLUMNS.split(","))},
                   1.0 - vec_distance_cosine(c.embedding, ?) AS similarity
            FROM chunks c
            JOIN sources s ON s.id = c.source_id
            WHERE c.embedding IS NOT NULL AND c.embedding_model = ?
        """
        params: list[Any] = [query_embedding, model]
        if space_id is not None:
            sql += " AND s.space_id = ?"
            params.append(space_id)
        sql += " ORDER BY similarity DESC, c.created_at DESC, c.rowid DESC LIMIT ?"
        params.append(limit)

        try:
            rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.OperationalError as exc:
            raise StorageError(f"Similarity search failed: {exc}") from exc
        return [(_row_to_chunk(r), float(r["similarity"])) for r in rows]

    # ------------------------------------------------------------------
    # Chats + citations
    # ------------------------------------------------------------------

    def add_chat(self, chat: Chat) -> None:
        with self.transaction():
            self._conn.execute(
                "INSERT INTO chats (id, space_id, title) VALUES (?, ?, ?)",
                (chat.id, chat.space_id, chat.title),
            )

    def add_message(self, message: ChatMessage) -> None:
        with self.transaction():
            self._conn.execute(
                "INSERT INTO chat_messages (id, chat_id, role, content) VALUES (?, ?, ?, ?)",
                (message.id, message.chat_id, message.role, message.content),
            )

    def delete_message(self, message_id: str) -> bool:
        """Delete a message; its citations go with it, the cited chunks stay."""
        with self.transaction():
            cur = self._conn.execute("DELETE FROM chat_messages WHERE id = ?", (message_id,))
        return cur.rowcount > 0

    def add_citation(self, citation: Citation) -> str:
        citation_id = citation.id or new_id()
        with self.transaction():
            self._conn.execute(
                "INSERT INTO citations (id, message_id, chunk_id, score) VALUES (?, ?, ?, ?)",
                (citation_id, citation.message_id, citation.chunk_id, citation.score),
            )
        return citation_id

    def list_citations(self, message_id: str) -> list[Citation]:
        rows = self._conn.execute(
            "SELECT id, message_id, chunk_id, score, created_at FROM citations "
            "WHERE message_id = ? ORDER BY score DESC",
            (message_id,),
        ).fetchall()
        return [
            Citation(
                id=r["id"],
                message_id=r["message_id"],
                chunk_id=r["chunk_id"],
                score=r["score"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _insert_source(self, source: Source) -> None:
        self._conn.execute(
            f"""
            INSERT INTO sources ({_SOURCE_COLUMNS.replace(", created_at", "")})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                source.id,
                source.space_id,
                source.user_id,
                source.title,
                source.description,
                SourceKind.parse(source.kind).value,
                source.url,
                source.file_path,
                json.dumps(source.tags),
                source.metadata.to_json(),
            ),
        )

    def _insert_chunk(self, chunk: Chunk) -> str:
        chunk.id = chunk.id or new_id()
        self._conn.execute(
            """
            INSERT INTO chunks
                (id, source_id, chunk_index, content, metadata, tags, embedding, embedding_model)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.id,
                chunk.source_id,
                chunk.chunk_index,
                chunk.content,
                chunk.metadata.to_json(),
                json.dumps(chunk.tags),
                chunk.embedding,
                chunk.embedding_model,
            ),
        )
        return chunk.id

    def _update(
        self,
        table: str,
        row_id: str,
        changes: dict[str, Any],
        allowed: frozenset[str],
        touch: bool,
    ) -> None:
        unknown = set(changes) - allowed
        if unknown:
            raise InvalidArgumentError(
                f"Cannot update {table} field(s): {', '.join(sorted(unknown))}"
            )
        if not changes:
            return
        assignments = []
        params: list[Any] = []
        for key, value in changes.items():
            assignments.append(f"{key} = ?")
            params.append(json.dumps(value) if key in ("tags", "metadata") else value)
        if touch:
            assignments.append("updated_at = strftime('%Y-%m-%d %H:%M:%f', 'now')")
        params.append(row_id)
        with self.transaction():
            self._conn.execute(
                f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?",  # noqa: S608
                params,
            )


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_space(row: sqlite3.Row) -> Space:
    return Space(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        description=row["description"],
        icon=row["icon"],
        backdrop=row["backdrop"],
        tags=json.loads(row["tags"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_note(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        space_id=row["space_id"],
        user_id=row["user_id"],
        title=row["title"],
        content=row["content"],
        tags=json.loads(row["tags"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_source(row: sqlite3.Row) -> Source:
    return Source(
        id=row["id"],
        space_id=row["space_id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        kind=SourceKind(row["kind"]),
        url=row["url"],
        file_path=row["file_path"],
        tags=json.loads(row["tags"]),
        metadata=SourceMetadata.from_json(row["metadata"]),
        created_at=row["created_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        source_id=row["source_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        metadata=ChunkMetadata.from_json(row["metadata"]),
        tags=json.loads(row["tags"]),
        embedding=row["embedding"],
        embedding_model=row["embedding_model"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
