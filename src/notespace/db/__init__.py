"""Notespace database layer."""

from notespace.db.connection import Database
from notespace.db.migrations import MIGRATIONS, run_migrations
from notespace.db.repository import Repository
from notespace.db.schema import initialize
from notespace.db.vectors import cosine_similarity, decode, encode

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "encode",
    "decode",
    "cosine_similarity",
]
