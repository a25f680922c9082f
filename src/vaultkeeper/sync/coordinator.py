"""Pull remote listings into the file index and push dirty files back.

The remote store is authoritative for clean rows: a refresh makes a folder's
rows equal the remote listing, and the local copy of a clean file the remote
no longer lists is deleted with its row. Dirty rows carry unpushed local work
and are never dropped by a refresh; when the remote moved on underneath them
the ConflictResolver reconciles both versions.

File content moves through this module as raw bytes, so attachments round-trip
unchanged.
"""

from __future__ import annotations

import logging
import posixpath
import time
from dataclasses import dataclass, field
from typing import Callable

from vaultkeeper.db.models import VaultFile
from vaultkeeper.db.repository import VaultStateStore
from vaultkeeper.errors import RemoteError
from vaultkeeper.remote.base import RemoteContentProvider, RemoteFile, Result
from vaultkeeper.sync.conflicts import Conflict, ConflictOutcome, ConflictResolver, Resolved
from vaultkeeper.tasks import CancelToken
from vaultkeeper.vault.notes import NoteStore

logger = logging.getLogger(__name__)


@dataclass
class PushReport:
    pushed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class PullReport:
    listed: int = 0
    downloaded: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class _Divergence:
    path: str
    outcome: ConflictOutcome


@dataclass
class _Refresh:
    entities: list[VaultFile]
    removed: list[str]


class SyncCoordinator:
    """Reconcile the local vault with a remote content provider.

    Args:
        store: File index.
        provider: Remote content provider (GitHub in production).
        notes: Local note I/O; writes rescan the touched path.
        resolver: Conflict strategy, defaults to ``ConflictResolver()``.
        clock: Epoch-seconds clock used for ``last_synced_at``.
    """

    def __init__(
        self,
        store: VaultStateStore,
        provider: RemoteContentProvider,
        notes: NoteStore,
        resolver: ConflictResolver | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.provider = provider
        self.notes = notes
        self.resolver = resolver or ConflictResolver()
        self._clock = clock

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def refresh_folder(self, owner: str, repo: str, path: str = "") -> Result[list[VaultFile]]:
        """Replace the rows of folder *path* with a fresh remote listing.

        Every remote fetch happens before the first local write, so a failure
        leaves the index and the vault exactly as they were.
        """
        refreshed = self._refresh(owner, repo, path)
        if not refreshed.ok:
            return Result.failure(refreshed.error)
        return Result.success(refreshed.value.entities if refreshed.value else [])

    def _refresh(self, owner: str, repo: str, path: str) -> Result[_Refresh]:
        listing = self.provider.list_contents(owner, repo, path)
        if not listing.ok:
            logger.warning("Listing '%s' failed: %s", path or "/", listing.error)
            return Result.failure(listing.error)

        remote_files: list[RemoteFile] = listing.value or []
        now = self._clock()
        entities: list[VaultFile] = []
        divergences: list[_Divergence] = []

        for rf in remote_files:
            existing = self.store.get(rf.path)
            if existing is not None and existing.is_dirty and rf.kind == "file":
                if existing.remote_hash == rf.content_hash:
                    existing.download_url = rf.download_url
                    entities.append(existing)
                    continue
                local = self.notes.read_bytes(rf.path)
                if local is not None:
                    fetched = self._fetch_remote(rf.download_url, rf.path)
                    if not fetched.ok:
                        return Result.failure(fetched.error)
                    outcome = self.resolver.resolve(rf.path, local, fetched.value or b"")
                    divergences.append(_Divergence(rf.path, outcome))
                    entities.append(
                        _merge_row(existing, rf, dirty=_is_divergent(outcome, local), synced_at=now)
                    )
                    continue
            entities.append(_from_remote(rf, existing, now))

        # Unpushed local rows missing from the listing stay put, including
        # those under a subfolder the remote no longer has.
        listed = {e.path for e in entities}
        listed_dirs = tuple(f"{e.path}/" for e in entities if e.is_dir)
        prefix = path.strip("/")
        before = {row.path: row for row in self.store.list(prefix)}
        for row in before.values():
            if not row.is_dirty or row.path == prefix or row.path in listed:
                continue
            if listed_dirs and row.path.startswith(listed_dirs):
                continue
            entities.append(row)

        self.store.replace_folder_contents(prefix, entities)
        for div in divergences:
            self._apply(div)

        remaining = {row.path for row in self.store.list(prefix)}
        purged = [row for p, row in before.items() if p not in remaining]
        removed = self._remove_local_copies(purged)

        logger.info("Refreshed '%s': %d entries", prefix or "/", len(remote_files))
        return Result.success(_Refresh(entities, removed))

    def pull(
        self,
        owner: str,
        repo: str,
        path: str = "",
        cancel: CancelToken | None = None,
    ) -> Result[PullReport]:
        """Refresh *path* recursively and download every stale clean file.

        A file is stale when its remote hash changed during the refresh or it
        has never been materialised locally. Clean files deleted remotely are
        deleted locally.
        """
        report = PullReport()
        pending = [path.strip("/")]
        while pending:
            folder = pending.pop(0)
            before = {f.path: f.remote_hash for f in self.store.list_children(folder)}
            refreshed = self._refresh(owner, repo, folder)
            if not refreshed.ok:
                return Result.failure(refreshed.error)
            step = refreshed.value or _Refresh([], [])
            report.removed.extend(step.removed)
            for entity in step.entities:
                if posixpath.dirname(entity.path) != folder:
                    continue
                report.listed += 1
                if entity.is_dir:
                    pending.append(entity.path)
                    continue
                if entity.is_dirty:
                    if before.get(entity.path) != entity.remote_hash:
                        report.conflicts.append(entity.path)
                    continue
                if before.get(entity.path) == entity.remote_hash and self.notes.exists(entity.path):
                    continue
                if cancel is not None and cancel.cancelled:
                    report.cancelled = True
                    return Result.success(report)
                downloaded = self.download_file(owner, repo, entity.path)
                if not downloaded.ok:
                    return Result.failure(downloaded.error)
                report.downloaded.append(entity.path)
        return Result.success(report)

    def download_file(self, owner: str, repo: str, path: str) -> Result[VaultFile]:
        """Fetch one file's remote content into the vault and mark it clean."""
        row = self.store.get(path)
        locator = row.download_url if row else None
        remote_hash = row.remote_hash if row else None
        if locator is None:
            listing = self.provider.list_contents(owner, repo, path)
            if not listing.ok:
                return Result.failure(listing.error)
            if not listing.value:
                return Result.failure(RemoteError(f"'{path}' not found remotely", status=404))
            locator = listing.value[0].download_url
            remote_hash = listing.value[0].content_hash

        fetched = self._fetch_remote(locator, path)
        if not fetched.ok:
            return Result.failure(fetched.error)

        self.notes.write_bytes(path, fetched.value or b"")
        self.store.mark_clean(path, remote_hash, self._synced_at(path))
        logger.debug("Downloaded %s", path)
        return Result.success(self.store.get(path))

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push_dirty_files(
        self,
        owner: str,
        repo: str,
        message: str | None = None,
        cancel: CancelToken | None = None,
    ) -> Result[PushReport]:
        """Push every dirty file, one at a time, aborting on the first failure.

        Files pushed before a failure stay clean; the failing file and every
        later one stay dirty, so a retry resumes where this run stopped.
        """
        report = PushReport()
        dirty = self.store.list_dirty()
        logger.info("Pushing %d dirty file(s)", len(dirty))

        for f in dirty:
            if cancel is not None and cancel.cancelled:
                report.cancelled = True
                logger.info("Push cancelled after %d file(s)", len(report.pushed))
                break
            if f.is_dir:
                continue

            local = self.notes.read_bytes(f.path)
            if local is None:
                logger.warning("Skipping %s: marked dirty but missing locally", f.path)
                report.skipped.append(f.path)
                continue

            current = self.provider.fetch_hash(owner, repo, f.path)
            if not current.ok:
                logger.error("Push aborted at %s: %s", f.path, current.error)
                return Result.failure(current.error)
            remote_hash = current.value

            if remote_hash is not None and remote_hash != f.remote_hash:
                merged = self._reconcile_for_push(owner, repo, f.path, local)
                if not merged.ok:
                    logger.error("Push aborted at %s: %s", f.path, merged.error)
                    return Result.failure(merged.error)
                outcome = merged.value or Resolved(local)
                if _is_divergent(outcome, local):
                    report.conflicts.append(f.path)
                local = _content_of(outcome)

            pushed = self.provider.push_content(
                owner,
                repo,
                f.path,
                local,
                remote_hash,
                message or f"Update {f.path}",
            )
            if not pushed.ok:
                logger.error("Push aborted at %s: %s", f.path, pushed.error)
                return Result.failure(pushed.error)

            self.store.mark_clean(f.path, pushed.value, self._synced_at(f.path))
            report.pushed.append(f.path)
            logger.debug("Pushed %s", f.path)

        return Result.success(report)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch_remote(self, locator: str | None, path: str) -> Result[bytes]:
        if not locator:
            return Result.failure(RemoteError(f"No download locator for '{path}'"))
        return self.provider.fetch_content(locator)

    def _reconcile_for_push(
        self, owner: str, repo: str, path: str, local: bytes
    ) -> Result[ConflictOutcome]:
        listing = self.provider.list_contents(owner, repo, path)
        if not listing.ok:
            return Result.failure(listing.error)
        if not listing.value:
            return Result.success(Resolved(local))
        fetched = self._fetch_remote(listing.value[0].download_url, path)
        if not fetched.ok:
            return Result.failure(fetched.error)

        outcome = self.resolver.resolve(path, local, fetched.value or b"")
        self._apply(_Divergence(path, outcome))
        return Result.success(outcome)

    def _apply(self, div: _Divergence) -> None:
        """Write a conflict outcome into the vault; side files land as new dirty rows."""
        outcome = div.outcome
        content = _content_of(outcome)
        if self.notes.read_bytes(div.path) != content:
            self.notes.write_bytes(div.path, content)
        if isinstance(outcome, Conflict):
            for side in outcome.side_files:
                logger.warning("Conflict on %s: remote copy saved as %s", div.path, side.path)
                self.notes.write_bytes(side.path, side.content)

    def _remove_local_copies(self, purged: list[VaultFile]) -> list[str]:
        """Delete local files (then emptied folders) whose rows a refresh purged.

        Only clean rows that were materialised locally qualify, and a file
        modified after its last sync is kept so discovery picks it up as new.
        """
        removed: list[str] = []
        files = [
            r for r in purged if not r.is_dir and not r.is_dirty and r.local_modified_at is not None
        ]
        for row in files:
            try:
                mtime = self.notes.resolve(row.path).stat().st_mtime
            except OSError:
                continue
            if mtime > max(row.last_synced_at or 0.0, row.local_modified_at or 0.0):
                logger.warning("Keeping %s: deleted remotely but changed locally", row.path)
                continue
            if self.notes.delete(row.path):
                logger.info("Deleted %s (removed from the remote)", row.path)
                removed.append(row.path)

        folders = sorted((r.path for r in purged if r.is_dir), key=len, reverse=True)
        for folder in folders:
            self.notes.remove_empty_dir(folder)
        return removed

    def _synced_at(self, path: str) -> float:
        """Sync timestamp no earlier than the file's mtime, so a rescan keeps it clean."""
        now = self._clock()
        try:
            return max(now, self.notes.resolve(path).stat().st_mtime)
        except OSError:
            return now


def _content_of(outcome: ConflictOutcome) -> bytes:
    return outcome.resolved_content if isinstance(outcome, Conflict) else outcome.content


def _is_divergent(outcome: ConflictOutcome, local: bytes) -> bool:
    if isinstance(outcome, Conflict):
        return True
    return outcome.content != local


def _merge_row(existing: VaultFile, rf: RemoteFile, dirty: bool, synced_at: float) -> VaultFile:
    return VaultFile(
        path=rf.path,
        name=rf.name,
        kind=rf.kind,
        remote_hash=rf.content_hash,
        download_url=rf.download_url,
        is_dirty=dirty,
        last_synced_at=existing.last_synced_at if dirty else synced_at,
        local_modified_at=existing.local_modified_at,
        tags=existing.tags,
        metadata=existing.metadata,
    )


def _from_remote(rf: RemoteFile, existing: VaultFile | None, synced_at: float) -> VaultFile:
    unchanged = existing is not None and existing.remote_hash == rf.content_hash
    return VaultFile(
        path=rf.path,
        name=rf.name or posixpath.basename(rf.path),
        kind=rf.kind,
        remote_hash=rf.content_hash,
        download_url=rf.download_url,
        is_dirty=False,
        last_synced_at=(existing.last_synced_at or synced_at) if unchanged and existing else synced_at,
        local_modified_at=existing.local_modified_at if existing else None,
        tags=existing.tags if existing else [],
        metadata=existing.metadata if existing else {},
    )
