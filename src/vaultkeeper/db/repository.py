"""Repository pattern for all vaultkeeper database operations.

``Repository`` owns the shared connection, its lock, and the explicit
transaction scope. ``VaultStateStore`` (file index) and ``EmbeddingStore``
(chunk vectors) are thin typed views over one ``Repository``, so that a
transaction opened on the repository covers both tables.
"""

from __future__ import annotations

import json
import logging
import posixpath
import sqlite3
import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager

from vaultkeeper.db.models import EmbeddingChunk, VaultFile
from vaultkeeper.db.vectors import blob_dimensions, decode_vector, encode_vector
from vaultkeeper.errors import DimensionMismatchError

logger = logging.getLogger(__name__)

# SQLite's default SQLITE_MAX_VARIABLE_NUMBER is 999 on older builds.
_IN_BATCH = 500

_FILE_COLUMNS = (
    "path, name, kind, remote_hash, download_url, is_dirty, "
    "last_synced_at, local_modified_at, tags, metadata"
)

STATE_LAST_INDEX_TIME = "last_index_time"
STATE_EMBEDDING_DIMENSIONS = "embedding_dimensions"
STATE_EMBEDDING_MODEL = "embedding_model"


class Repository:
    """Shared connection plus transaction scope.

    The connection is opened in autocommit mode (see ``Database.connect``);
    every statement outside ``transaction()`` commits on its own. All access
    is serialised through a re-entrant lock so the connection can be shared
    between worker threads.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see vaultkeeper.db.schema.initialize).
        """
        self._conn = conn
        self._lock = threading.RLock()
        self._depth = 0

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction; commit on exit, roll back on any exception.

        Nested calls join the outermost transaction. The lock is held for the
        whole scope and released on every exit path.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self._conn
                finally:
                    self._depth -= 1
                return

            self._conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")
            finally:
                self._depth = 0

    def execute(self, sql: str, params: Sequence = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(sql, params)

    def fetchall(self, sql: str, params: Sequence = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def fetchone(self, sql: str, params: Sequence = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    # ------------------------------------------------------------------
    # index_state key/value
    # ------------------------------------------------------------------

    def get_state(self, key: str) -> str | None:
        row = self.fetchone("SELECT value FROM index_state WHERE key = ?", (key,))
        return row["value"] if row else None

    def set_state(self, key: str, value: str) -> None:
        with self.transaction():
            self._conn.execute(
                """
                INSERT INTO index_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    def delete_state(self, key: str) -> None:
        with self.transaction():
            self._conn.execute("DELETE FROM index_state WHERE key = ?", (key,))


class VaultStateStore:
    """Durable index of every vault path: remote hash, dirty flag, timestamps."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, path: str) -> VaultFile | None:
        row = self._repo.fetchone(
            f"SELECT {_FILE_COLUMNS} FROM vault_files WHERE path = ?", (path,)
        )
        return _row_to_file(row) if row else None

    def exists(self, path: str) -> bool:
        return self._repo.fetchone(
            "SELECT 1 FROM vault_files WHERE path = ?", (path,)
        ) is not None

    def list(self, prefix: str = "") -> list[VaultFile]:
        """Return rows at or below *prefix*, ordered by path.

        An empty prefix returns the whole vault.
        """
        prefix = _normalize_prefix(prefix)
        if not prefix:
            rows = self._repo.fetchall(
                f"SELECT {_FILE_COLUMNS} FROM vault_files ORDER BY path"
            )
        else:
            rows = self._repo.fetchall(
                f"""
                SELECT {_FILE_COLUMNS} FROM vault_files
                WHERE path = ? OR path LIKE ? ESCAPE '\\'
                ORDER BY path
                """,
                (prefix, _like_escape(prefix) + "/%"),
            )
        return [_row_to_file(r) for r in rows]

    def list_children(self, prefix: str = "") -> list[VaultFile]:
        """Return only the direct children of folder *prefix*."""
        prefix = _normalize_prefix(prefix)
        return [f for f in self.list(prefix) if _parent(f.path) == prefix]

    def list_dirty(self) -> list[VaultFile]:
        rows = self._repo.fetchall(
            f"SELECT {_FILE_COLUMNS} FROM vault_files WHERE is_dirty = 1 ORDER BY path"
        )
        return [_row_to_file(r) for r in rows]

    def list_paths(self) -> set[str]:
        return {r["path"] for r in self._repo.fetchall("SELECT path FROM vault_files")}

    def count(self) -> int:
        return self._repo.fetchone("SELECT COUNT(*) FROM vault_files")[0]

    def count_dirty(self) -> int:
        return self._repo.fetchone(
            "SELECT COUNT(*) FROM vault_files WHERE is_dirty = 1"
        )[0]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, entity: VaultFile) -> None:
        self.upsert_many([entity])

    def upsert_many(self, entities: Iterable[VaultFile]) -> None:
        """Insert or update rows in one transaction.

        Uses ON CONFLICT DO UPDATE rather than INSERT OR REPLACE: a REPLACE
        deletes the old row first, which would cascade to its embeddings.
        """
        params = [_file_to_params(e) for e in entities]
        if not params:
            return
        with self._repo.transaction() as conn:
            conn.executemany(
                f"""
                INSERT INTO vault_files ({_FILE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    name = excluded.name,
                    kind = excluded.kind,
                    remote_hash = excluded.remote_hash,
                    download_url = excluded.download_url,
                    is_dirty = excluded.is_dirty,
                    last_synced_at = excluded.last_synced_at,
                    local_modified_at = excluded.local_modified_at,
                    tags = excluded.tags,
                    metadata = excluded.metadata
                """,
                params,
            )

    def delete(self, paths: Iterable[str]) -> int:
        """Delete rows by exact path. Embeddings cascade. Returns rows deleted."""
        paths = list(paths)
        if not paths:
            return 0
        deleted = 0
        with self._repo.transaction() as conn:
            for i in range(0, len(paths), _IN_BATCH):
                batch = paths[i : i + _IN_BATCH]
                placeholders = ",".join("?" * len(batch))
                cur = conn.execute(
                    f"DELETE FROM vault_files WHERE path IN ({placeholders})", batch
                )
                deleted += cur.rowcount
        return deleted

    def mark_clean(
        self, path: str, remote_hash: str | None, synced_at: float
    ) -> None:
        """Record a confirmed push: clear the dirty flag and store the new hash.

        A ``None`` hash keeps the previously known one.
        """
        with self._repo.transaction() as conn:
            conn.execute(
                """
                UPDATE vault_files
                SET is_dirty = 0,
                    remote_hash = COALESCE(?, remote_hash),
                    last_synced_at = ?
                WHERE path = ?
                """,
                (remote_hash, synced_at, path),
            )

    def replace_folder_contents(
        self, prefix: str, entities: Sequence[VaultFile]
    ) -> int:
        """Make folder *prefix* match *entities* exactly, atomically.

        *entities* is a listing of the folder's direct children. Every row
        under *prefix* that is not in *entities*, and does not sit inside a
        child directory that is in *entities*, is deleted; *entities* are then
        upserted. Returns the number of rows deleted.
        """
        prefix = _normalize_prefix(prefix)
        keep = {e.path for e in entities}
        with self._repo.transaction():
            stale = [
                f.path
                for f in self.list(prefix)
                if f.path != prefix
                and f.path not in keep
                and _child_ancestor(prefix, f.path) not in keep
            ]
            deleted = self.delete(stale)
            self.upsert_many(entities)
        if deleted:
            logger.info("Purged %d stale entries under '%s'", deleted, prefix or "/")
        return deleted


class EmbeddingStore:
    """Chunk text + vector rows keyed to vault_files.path."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def dimensions(self) -> int | None:
        """Return the dimensionality fixed for this store, or None if unset."""
        value = self._repo.get_state(STATE_EMBEDDING_DIMENSIONS)
        return int(value) if value is not None else None

    def insert(self, chunk: EmbeddingChunk) -> None:
        self.insert_many([chunk])

    def insert_many(self, chunks: Sequence[EmbeddingChunk]) -> None:
        """Insert chunks, enforcing one vector length across the whole store.

        Raises:
            DimensionMismatchError: If a vector's length differs from the
                store's recorded dimensionality (or from its siblings).
        """
        if not chunks:
            return
        with self._repo.transaction() as conn:
            expected = self.dimensions()
            params = []
            for chunk in chunks:
                blob = encode_vector(chunk.vector)
                dims = blob_dimensions(blob)
                if expected is None:
                    expected = dims
                    self._repo.set_state(STATE_EMBEDDING_DIMENSIONS, str(dims))
                elif dims != expected:
                    raise DimensionMismatchError(
                        f"Vector for '{chunk.file_id}' has {dims} dimensions; "
                        f"store uses {expected}."
                    )
                params.append(
                    (chunk.id, chunk.file_id, chunk.content, blob, chunk.last_updated)
                )
            conn.executemany(
                """
                INSERT INTO embedding_chunks (id, file_id, content, vector, last_updated)
                VALUES (?, ?, ?, ?, ?)
                """,
                params,
            )

    def all(self) -> list[EmbeddingChunk]:
        rows = self._repo.fetchall(
            "SELECT id, file_id, content, vector, last_updated FROM embedding_chunks"
        )
        return [_row_to_chunk(r) for r in rows]

    def for_file(self, file_id: str) -> list[EmbeddingChunk]:
        rows = self._repo.fetchall(
            """
            SELECT id, file_id, content, vector, last_updated
            FROM embedding_chunks WHERE file_id = ? ORDER BY rowid
            """,
            (file_id,),
        )
        return [_row_to_chunk(r) for r in rows]

    def count(self, file_id: str | None = None) -> int:
        if file_id is None:
            return self._repo.fetchone("SELECT COUNT(*) FROM embedding_chunks")[0]
        return self._repo.fetchone(
            "SELECT COUNT(*) FROM embedding_chunks WHERE file_id = ?", (file_id,)
        )[0]

    def file_ids(self) -> set[str]:
        return {
            r["file_id"]
            for r in self._repo.fetchall("SELECT DISTINCT file_id FROM embedding_chunks")
        }

    def delete_for_file(self, file_id: str) -> int:
        with self._repo.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM embedding_chunks WHERE file_id = ?", (file_id,)
            )
            return cur.rowcount

    def delete_orphans(self) -> int:
        """Delete chunks whose file no longer exists in vault_files."""
        with self._repo.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM embedding_chunks WHERE file_id NOT IN (SELECT path FROM vault_files)"
            )
            return cur.rowcount

    def delete_all(self) -> int:
        """Wipe the store and forget its dimensionality (new store generation)."""
        with self._repo.transaction() as conn:
            cur = conn.execute("DELETE FROM embedding_chunks")
            conn.execute(
                "DELETE FROM index_state WHERE key = ?", (STATE_EMBEDDING_DIMENSIONS,)
            )
            return cur.rowcount


# ------------------------------------------------------------------
# Path helpers
# ------------------------------------------------------------------


def _normalize_prefix(prefix: str) -> str:
    return prefix.strip("/")


def _parent(path: str) -> str:
    return posixpath.dirname(path)


def _child_ancestor(prefix: str, path: str) -> str:
    """Return the direct child of *prefix* that contains *path* (or *path* itself)."""
    rel = path[len(prefix) + 1 :] if prefix else path
    head = rel.split("/", 1)[0]
    return f"{prefix}/{head}" if prefix else head


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ------------------------------------------------------------------
# Row ↔ model helpers
# ------------------------------------------------------------------


def _file_to_params(f: VaultFile) -> tuple:
    return (
        f.path,
        f.name,
        f.kind,
        f.remote_hash,
        f.download_url,
        int(f.is_dirty),
        f.last_synced_at,
        f.local_modified_at,
        json.dumps(f.tags),
        json.dumps(f.metadata, default=str),
    )


def _row_to_file(row: sqlite3.Row) -> VaultFile:
    return VaultFile(
        path=row["path"],
        name=row["name"],
        kind=row["kind"],
        remote_hash=row["remote_hash"],
        download_url=row["download_url"],
        is_dirty=bool(row["is_dirty"]),
        last_synced_at=row["last_synced_at"],
        local_modified_at=row["local_modified_at"],
        tags=json.loads(row["tags"] or "[]"),
        metadata=json.loads(row["metadata"] or "{}"),
    )


def _row_to_chunk(row: sqlite3.Row) -> EmbeddingChunk:
    return EmbeddingChunk(
        id=row["id"],
        file_id=row["file_id"],
        content=row["content"],
        vector=decode_vector(row["vector"]),
        last_updated=row["last_updated"],
    )
