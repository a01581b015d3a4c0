"""FastAPI application exposing ingestion storage and search as a REST API."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from notespace.errors import ConsistencyError, InputError, ProviderError, StorageError
from notespace.ingest.orchestrator import Orchestrator, SourceData
from notespace.providers.base import ProcessingResult
from notespace.rag.retriever import Retriever

T = TypeVar("T")


# ── Request / Response schemas ────────────────────────────────────────
class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProcessingResultIn(_CamelModel):
    """Provider output: ordered chunk texts plus a summary."""

    model_config = ConfigDict(strict=True)

    text: list[str]
    summary: str


class SourceDataIn(_CamelModel):
    title: str
    type: str
    space_id: str
    user_id: str
    description: str | None = None
    url: str | None = None
    tags: list[str] = []


class StoreSourceRequest(_CamelModel):
    processing_result: ProcessingResultIn
    source_data: SourceDataIn


class StoreSourceResponse(_CamelModel):
    success: bool
    source_id: str | None = None
    title: str
    description: str | None = None
    chunk_count: int = 0
    error: str | None = None


class SearchRequest(_CamelModel):
    query: str
    space_id: str | None = None
    limit: int = 5


class SearchHit(_CamelModel):
    chunk_id: str
    source_id: str
    chunk_index: int
    content: str
    metadata: dict = Field(default_factory=dict)
    similarity: float


class SearchResponse(_CamelModel):
    results: list[SearchHit]


# ── App factory ───────────────────────────────────────────────────────
def create_app(orchestrator: Orchestrator, retriever: Retriever) -> FastAPI:
    """Build the API around explicitly constructed collaborators."""
    app = FastAPI(
        title="Notespace API",
        version="0.1.0",
        description="Store extracted sources and search their chunks.",
    )
    db_lock = threading.Lock()

    def run_blocking(coro: Coroutine[Any, Any, T]) -> T:
        """Run *coro* on this worker thread, one request at a time on the connection."""
        with db_lock:
            return asyncio.run(coro)

    @app.exception_handler(InputError)
    async def _input_error(request: Request, exc: InputError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ProviderError)
    async def _provider_error(request: Request, exc: ProviderError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"error": str(exc)})

    @app.exception_handler(StorageError)
    @app.exception_handler(ConsistencyError)
    async def _server_error(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.post("/api/store-source", response_model=StoreSourceResponse, response_model_by_alias=True)
    def store_source(request: StoreSourceRequest) -> StoreSourceResponse:
        """Persist a processing result as one Source with its Chunks.

        Both logical outcomes are HTTP 200; ``success`` tells them apart.
        """
        data = request.source_data
        result = run_blocking(orchestrator.store(
            ProcessingResult(
                chunks=list(request.processing_result.text),
                summary=request.processing_result.summary,
            ),
            SourceData(
                title=data.title,
                kind=data.type,
                space_id=data.space_id,
                user_id=data.user_id,
                description=data.description,
                url=data.url,
                tags=list(data.tags),
            ),
        ))
        return StoreSourceResponse(
            success=result.success,
            source_id=result.source_id,
            title=result.title,
            description=result.description,
            chunk_count=result.chunk_count,
            error=result.error,
        )

    @app.post("/api/search", response_model=SearchResponse, response_model_by_alias=True)
    def search(request: SearchRequest) -> SearchResponse:
        """Rank stored chunks by similarity to the query."""
        hits = run_blocking(retriever.search(request.query, scope=request.space_id, limit=request.limit))
        return SearchResponse(
            results=[
                SearchHit(
                    chunk_id=hit.chunk.id or "",
                    source_id=hit.chunk.source_id,
                    chunk_index=hit.chunk.chunk_index,
                    content=hit.chunk.content,
                    metadata=hit.chunk.metadata.to_dict(),
                    similarity=hit.similarity,
                )
                for hit in hits
            ]
        )

    return app
