"""Tests for the forward-only migration runner."""

from __future__ import annotations

from vaultkeeper.db.connection import Database
from vaultkeeper.db.migrations import MIGRATIONS, run_migrations


def _tables(conn) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {r["name"] for r in rows}


def test_migrations_are_ascending():
    versions = [v for v, _ in MIGRATIONS]
    assert versions == sorted(versions)
    assert len(versions) == len(set(versions))


def test_run_migrations_creates_tables(tmp_path):
    conn = Database(tmp_path / "m.db").connect()
    run_migrations(conn)
    assert {"schema_version", "vault_files", "embedding_chunks", "index_state"} <= _tables(conn)
    conn.close()


def test_run_migrations_records_each_version_once(tmp_path):
    conn = Database(tmp_path / "m.db").connect()
    run_migrations(conn)
    run_migrations(conn)
    versions = [r[0] for r in conn.execute("SELECT version FROM schema_version").fetchall()]
    assert versions == [v for v, _ in MIGRATIONS]
    conn.close()


def test_run_migrations_preserves_existing_rows(tmp_path):
    conn = Database(tmp_path / "m.db").connect()
    run_migrations(conn)
    conn.execute("INSERT INTO vault_files (path, name) VALUES ('keep.md', 'keep.md')")
    run_migrations(conn)
    assert conn.execute("SELECT COUNT(*) FROM vault_files").fetchone()[0] == 1
    conn.close()
