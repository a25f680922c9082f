"""Forward-only migration runner for the vaultkeeper database schema."""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS vault_files (
    path              TEXT PRIMARY KEY,
    name              TEXT NOT NULL,
    kind              TEXT NOT NULL DEFAULT 'file' CHECK (kind IN ('file', 'dir')),
    remote_hash       TEXT,
    download_url      TEXT,
    is_dirty          INTEGER NOT NULL DEFAULT 0,
    last_synced_at    REAL,
    local_modified_at REAL,
    tags              TEXT NOT NULL DEFAULT '[]',
    metadata          TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_vault_files_dirty ON vault_files(is_dirty) WHERE is_dirty = 1;

CREATE TABLE IF NOT EXISTS embedding_chunks (
    id              TEXT PRIMARY KEY,
    file_id         TEXT NOT NULL REFERENCES vault_files(path) ON DELETE CASCADE,
    content         TEXT NOT NULL,
    vector          BLOB NOT NULL,
    last_updated    REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_embedding_chunks_file ON embedding_chunks(file_id);

CREATE TABLE IF NOT EXISTS index_state (
    key     TEXT PRIMARY KEY,
    value   TEXT NOT NULL
);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            logger.info("Applying schema migration v%d", version)
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
