"""Embedding client and similarity retrieval."""

from notespace.rag.llm_client import Embedder
from notespace.rag.retriever import Retriever, SearchResult

__all__ = ["Embedder", "Retriever", "SearchResult"]
