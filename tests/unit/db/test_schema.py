"""Tests for database schema initialization."""

from __future__ import annotations

import sqlite3

import pytest

from vaultkeeper.db.connection import Database
from vaultkeeper.db.schema import CURRENT_VERSION, initialize, schema_version


def _table_columns(conn, table: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {row["name"] for row in rows}


def test_vault_files_columns(tmp_db):
    assert _table_columns(tmp_db, "vault_files") == {
        "path",
        "name",
        "kind",
        "remote_hash",
        "download_url",
        "is_dirty",
        "last_synced_at",
        "local_modified_at",
        "tags",
        "metadata",
    }


def test_embedding_chunks_columns(tmp_db):
    assert _table_columns(tmp_db, "embedding_chunks") == {
        "id",
        "file_id",
        "content",
        "vector",
        "last_updated",
    }


def test_index_state_columns(tmp_db):
    assert _table_columns(tmp_db, "index_state") == {"key", "value"}


def test_schema_version_is_current(tmp_db):
    assert schema_version(tmp_db) == CURRENT_VERSION


def test_schema_version_zero_on_fresh_db(tmp_path):
    conn = Database(tmp_path / "fresh.db").connect()
    assert schema_version(conn) == 0
    conn.close()


def test_initialize_idempotent(tmp_db):
    initialize(tmp_db)
    initialize(tmp_db)
    rows = tmp_db.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert rows == CURRENT_VERSION


def test_kind_check_constraint(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute("INSERT INTO vault_files (path, name, kind) VALUES ('a', 'a', 'link')")


def test_chunks_cascade_on_file_delete(tmp_db):
    tmp_db.execute("INSERT INTO vault_files (path, name) VALUES ('a.md', 'a.md')")
    tmp_db.execute(
        "INSERT INTO embedding_chunks (id, file_id, content, vector, last_updated) "
        "VALUES ('c1', 'a.md', 'x', X'0000803F', 0)"
    )
    tmp_db.execute("DELETE FROM vault_files WHERE path = 'a.md'")
    assert tmp_db.execute("SELECT COUNT(*) FROM embedding_chunks").fetchone()[0] == 0


def test_chunk_requires_existing_file(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO embedding_chunks (id, file_id, content, vector, last_updated) "
            "VALUES ('c1', 'missing.md', 'x', X'0000803F', 0)"
        )
