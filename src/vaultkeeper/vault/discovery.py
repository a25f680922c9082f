"""Vault discovery — diff the local filesystem against the file index.

A scan walks the vault tree, compares it with VaultStateStore, writes new and
modified entries in one batch, prunes entries whose file disappeared, and
returns the changed set for the embedding indexer.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

import yaml

from vaultkeeper.db.models import VaultFile
from vaultkeeper.db.repository import VaultStateStore
from vaultkeeper.vault.frontmatter import extract_metadata

logger = logging.getLogger(__name__)

# Version-control internals are never part of the vault.
_VCS_DIRS = frozenset({".git", ".hg", ".svn"})
_MARKDOWN_EXTS = (".md", ".markdown")


class VaultDiscoveryEngine:
    """Keep VaultStateStore in step with the files under *root*.

    Args:
        root: Vault root directory (created if missing on first scan).
        store: File index to update.
        ignore: Vault-relative paths that are never indexed (e.g. the
            per-vault config file).
    """

    def __init__(
        self, root: Path | str, store: VaultStateStore, ignore: Iterable[str] = ()
    ) -> None:
        self.root = Path(root)
        self.store = store
        self.ignore = frozenset(ignore)

    def reindex_all(self, since: float = 0.0) -> list[VaultFile]:
        """Scan the whole vault and return entries new or modified after *since*.

        - on disk, not in the store → new, always reported;
        - in both, modified after *since* → reported;
        - in the store, gone from disk → deleted (not reported). Entries known
          only from a remote listing (never materialised locally) are kept.

        Args:
            since: Epoch seconds; 0 reports every file as changed.
        """
        start = time.monotonic()
        self.root.mkdir(parents=True, exist_ok=True)

        known = {f.path: f for f in self.store.list()}
        on_disk: set[str] = set()
        changed: list[VaultFile] = []

        for path, full in self._walk():
            on_disk.add(path)
            existing = known.get(path)
            try:
                mtime = full.stat().st_mtime
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", path, exc)
                continue
            if existing is None or existing.local_modified_at is None or mtime > since:
                changed.append(self._build_entity(path, full, mtime, existing))

        if changed:
            self.store.upsert_many(changed)
            logger.info("Indexed %d new/modified items", len(changed))

        to_delete = [
            p for p, f in known.items() if p not in on_disk and not _is_remote_only(f)
        ]
        if to_delete:
            self.store.delete(to_delete)
            logger.info("Pruned %d deleted items", len(to_delete))

        logger.debug(
            "Scan took %.0f ms; %d changed since %s",
            (time.monotonic() - start) * 1000,
            len(changed),
            since,
        )
        return changed

    def scan_single_file(self, path: str) -> VaultFile | None:
        """Refresh one path after a local write: upsert it, or delete it if gone.

        Returns the stored entity, or None when the path was deleted.
        """
        path = normalize_vault_path(path)
        full = self.root / path
        if not full.exists():
            self.store.delete([path])
            return None
        entity = self._build_entity(path, full, full.stat().st_mtime, self.store.get(path))
        self.store.upsert(entity)
        return entity

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _walk(self):
        """Yield ``(relative_posix_path, absolute_path)`` for every entry, sorted."""
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(
                d for d in dirnames if d not in _VCS_DIRS and not d.startswith(".")
            )
            base = Path(dirpath)
            for d in dirnames:
                yield self._relative(base / d), base / d
            for name in sorted(filenames):
                if name.startswith("."):
                    continue
                rel = self._relative(base / name)
                if rel in self.ignore:
                    continue
                yield rel, base / name

    def _relative(self, full: Path) -> str:
        return full.relative_to(self.root).as_posix()

    def _build_entity(
        self, path: str, full: Path, mtime: float, existing: VaultFile | None
    ) -> VaultFile:
        is_dir = full.is_dir()
        entity = VaultFile(
            path=path,
            name=full.name,
            kind="dir" if is_dir else "file",
            remote_hash=existing.remote_hash if existing else None,
            download_url=existing.download_url if existing else None,
            last_synced_at=existing.last_synced_at if existing else None,
            local_modified_at=mtime,
            tags=existing.tags if existing else [],
            metadata=existing.metadata if existing else {},
        )
        if not is_dir:
            synced = entity.last_synced_at
            entity.is_dirty = bool(
                (existing is not None and existing.is_dirty)
                or synced is None
                or mtime > synced
            )
        if not is_dir and path.lower().endswith(_MARKDOWN_EXTS):
            self._attach_metadata(entity, full)
        return entity

    @staticmethod
    def _attach_metadata(entity: VaultFile, full: Path) -> None:
        """Best-effort frontmatter extraction; failures never block indexing."""
        try:
            meta = extract_metadata(full.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.warning("Metadata extraction failed for %s: %s", entity.path, exc)
            return
        entity.tags = meta.tags
        entity.metadata = {**meta.extra, **({"aliases": meta.aliases} if meta.aliases else {})}


def _is_remote_only(f: VaultFile) -> bool:
    return f.remote_hash is not None and f.local_modified_at is None


def normalize_vault_path(path: str) -> str:
    normalized = PurePosixPath(path.replace("\\", "/").strip("/")).as_posix()
    if normalized in ("", ".") or ".." in PurePosixPath(normalized).parts:
        raise ValueError(f"Invalid vault path: '{path}'")
    return normalized
