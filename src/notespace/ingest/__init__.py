"""Ingestion pipeline: per-kind extraction, chunking, orchestration and embedding."""

from notespace.ingest.chunker import SemanticChunker
from notespace.ingest.embedding_writer import EmbeddingWriter
from notespace.ingest.extractor import ContentExtractor
from notespace.ingest.orchestrator import IngestionResult, Orchestrator, SourceData

__all__ = [
    "ContentExtractor",
    "EmbeddingWriter",
    "IngestionResult",
    "Orchestrator",
    "SemanticChunker",
    "SourceData",
]
