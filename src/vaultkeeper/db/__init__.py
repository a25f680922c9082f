"""vaultkeeper database layer."""

from vaultkeeper.db.connection import Database
from vaultkeeper.db.migrations import MIGRATIONS, run_migrations
from vaultkeeper.db.models import EmbeddingChunk, VaultFile
from vaultkeeper.db.repository import EmbeddingStore, Repository, VaultStateStore
from vaultkeeper.db.schema import initialize

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Repository",
    "VaultStateStore",
    "EmbeddingStore",
    "VaultFile",
    "EmbeddingChunk",
    "open_repository",
]


def open_repository(db_path) -> Repository:
    """Open (or create) the vault database, run migrations, and wrap it."""
    conn = Database(db_path).connect()
    initialize(conn)
    return Repository(conn)
