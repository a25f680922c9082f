"""Delta embedding indexer.

One cycle: scan the vault for files changed since the last completed cycle,
prune orphaned chunks, then re-embed each changed Markdown note in its own
transaction. The cycle's start time becomes the next horizon only when the
cycle ran to completion.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from vaultkeeper.db.models import EmbeddingChunk, VaultFile
from vaultkeeper.db.repository import (
    STATE_EMBEDDING_MODEL,
    STATE_LAST_INDEX_TIME,
    EmbeddingStore,
    Repository,
    VaultStateStore,
)
from vaultkeeper.errors import DimensionMismatchError, EngineNotReady, TransactionAborted
from vaultkeeper.index.chunker import DEFAULT_OVERLAP, DEFAULT_WINDOW, MarkdownChunker
from vaultkeeper.index.search import VectorSearchEngine
from vaultkeeper.remote.base import Result
from vaultkeeper.tasks import CancelToken
from vaultkeeper.vault.discovery import VaultDiscoveryEngine

logger = logging.getLogger(__name__)


@dataclass
class IndexerConfig:
    """Configuration for the embedding indexer.

    Attributes:
        window: Sliding-window size in characters.
        overlap: Characters shared by consecutive windows.
        max_attempts: Attempts per ``run()`` before giving up.
        retry_delay: Base delay in seconds; attempt *n* waits ``n * retry_delay``.
        journal_dir: Folder holding daily journal notes (``YYYY-MM-DD.md``).
        model: Embedding model identifier; a change forces a full rebuild.
    """

    window: int = DEFAULT_WINDOW
    overlap: int = DEFAULT_OVERLAP
    max_attempts: int = 3
    retry_delay: float = 2.0
    journal_dir: str = "10_Journal"
    model: str | None = None


@dataclass
class IndexCycleReport:
    full: bool = False
    changed: int = 0
    orphans_removed: int = 0
    indexed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    chunks_written: int = 0
    cancelled: bool = False


class EmbeddingIndexer:
    """Keep the embedding store in step with the vault.

    Args:
        repo: Shared repository (transaction scope, index_state).
        discovery: Vault scanner feeding the changed set.
        engine: Embeds chunk text.
        config: Chunking / retry settings.
        active_file: Returns the vault path currently being edited, which is
            never embedded mid-edit. Defaults to today's journal note.
    """

    def __init__(
        self,
        repo: Repository,
        discovery: VaultDiscoveryEngine,
        engine: VectorSearchEngine,
        config: IndexerConfig | None = None,
        active_file: Callable[[], str | None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repo
        self._files = VaultStateStore(repo)
        self._embeddings = EmbeddingStore(repo)
        self._discovery = discovery
        self._engine = engine
        self._config = config or IndexerConfig()
        self._chunker = MarkdownChunker(self._config.window, self._config.overlap)
        self._active_file = active_file or self._todays_journal
        self._clock = clock

    def _todays_journal(self) -> str:
        return f"{self._config.journal_dir}/{date.today().isoformat()}.md"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def last_index_time(self) -> float:
        value = self._repo.get_state(STATE_LAST_INDEX_TIME)
        return float(value) if value else 0.0

    def run(self, full: bool = False, cancel: CancelToken | None = None) -> Result[IndexCycleReport]:
        """Run one cycle, retrying top-level failures up to ``max_attempts`` times."""
        attempts = max(1, self._config.max_attempts)
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                return Result.success(self.run_cycle(full=full, cancel=cancel))
            except Exception as exc:  # per-file errors never reach here
                last_error = exc
                logger.warning("Indexing attempt %d/%d failed: %s", attempt, attempts, exc)
            if attempt < attempts:
                delay = self._config.retry_delay * attempt
                if cancel is not None:
                    if cancel.wait(delay):
                        break
                else:
                    time.sleep(delay)

        logger.error("Indexing failed: %s", last_error)
        return Result.failure(last_error or RuntimeError("Indexing did not run"))

    def run_cycle(self, full: bool = False, cancel: CancelToken | None = None) -> IndexCycleReport:
        """Run a single delta (or full) indexing cycle. Top-level errors propagate."""
        start = self._clock()
        model = self._config.model
        if model and self._repo.get_state(STATE_EMBEDDING_MODEL) not in (None, model):
            logger.info("Embedding model changed to %s; rebuilding the index", model)
            full = True

        report = IndexCycleReport(full=full)
        if full:
            removed = self._embeddings.delete_all()
            logger.info("Full reindex: cleared %d chunks", removed)
            horizon = 0.0
        else:
            horizon = self.last_index_time()

        changed = self._discovery.reindex_all(horizon)
        report.changed = len(changed)
        report.orphans_removed = self._embeddings.delete_orphans()

        active = self._active_file()
        for entity in changed:
            if not entity.is_markdown:
                continue
            if entity.path == active:
                logger.debug("Skipping active note %s", entity.path)
                report.skipped.append(entity.path)
                continue
            if cancel is not None and cancel.cancelled:
                report.cancelled = True
                logger.info("Indexing cancelled after %d file(s)", len(report.indexed))
                break
            try:
                written = self._index_file(entity)
            except EngineNotReady:
                raise
            except Exception as exc:
                logger.error("Failed to embed %s: %s", entity.path, exc)
                report.failed.append(entity.path)
                continue
            if written is None:
                report.skipped.append(entity.path)
            else:
                report.indexed.append(entity.path)
                report.chunks_written += written

        if not report.cancelled:
            self._repo.set_state(STATE_LAST_INDEX_TIME, repr(start))
            if model:
                self._repo.set_state(STATE_EMBEDDING_MODEL, model)

        logger.info(
            "Indexing cycle: %d changed, %d indexed, %d chunks, %d orphans pruned",
            report.changed,
            len(report.indexed),
            report.chunks_written,
            report.orphans_removed,
        )
        return report

    # ------------------------------------------------------------------
    # Per-file work
    # ------------------------------------------------------------------

    def _index_file(self, entity: VaultFile) -> int | None:
        """Re-embed one note. Returns chunks written, or None when skipped.

        Reading, chunking and embedding happen before the write transaction;
        the transaction re-checks that the file is still indexed, then swaps
        the old chunks for the new ones.
        """
        full = self._discovery.root / entity.path
        if not full.is_file():
            return None
        content = full.read_text(encoding="utf-8")

        chunks: list[EmbeddingChunk] = []
        for piece in self._chunker.chunk(content):
            embedded = self._engine.embed(piece)
            if not embedded.ok:
                if isinstance(embedded.error, EngineNotReady):
                    raise embedded.error
                logger.warning("Chunk of %s not embedded: %s", entity.path, embedded.error)
                continue
            chunks.append(EmbeddingChunk(file_id=entity.path, content=piece, vector=embedded.value or []))

        try:
            with self._repo.transaction():
                if not self._files.exists(entity.path):
                    logger.warning("Skipping %s: no longer in the file index", entity.path)
                    return None
                self._embeddings.delete_for_file(entity.path)
                if not content.strip():
                    return None
                self._embeddings.insert_many(chunks)
        except (sqlite3.Error, DimensionMismatchError) as exc:
            raise TransactionAborted(f"Chunks of '{entity.path}' rolled back: {exc}") from exc
        logger.debug("Embedded %s (%d chunks)", entity.path, len(chunks))
        return len(chunks)
