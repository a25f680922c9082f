"""Read / write vault notes and keep the file index current after each write."""

from __future__ import annotations

import logging
from pathlib import Path

from vaultkeeper.db.models import VaultFile
from vaultkeeper.vault.discovery import VaultDiscoveryEngine, normalize_vault_path

logger = logging.getLogger(__name__)


class NoteStore:
    """Filesystem access to notes under the vault root.

    Every mutation is followed by ``VaultDiscoveryEngine.scan_single_file`` so
    the index (and the dirty flag) reflects the write immediately.
    """

    def __init__(self, discovery: VaultDiscoveryEngine) -> None:
        self._discovery = discovery
        self.root = discovery.root

    def resolve(self, path: str) -> Path:
        """Return the absolute path for *path*.

        Raises:
            ValueError: If *path* escapes the vault root.
        """
        full = (self.root / normalize_vault_path(path)).resolve()
        if not full.is_relative_to(self.root.resolve()):
            raise ValueError(f"Path escapes the vault: '{path}'")
        return full

    def exists(self, path: str) -> bool:
        return self.resolve(path).exists()

    def read(self, path: str) -> str | None:
        """Return the note text, or None for a missing path or a directory.

        Raises:
            UnicodeDecodeError: If the file is not UTF-8 text; use
                ``read_bytes`` for attachments.
        """
        data = self.read_bytes(path)
        return None if data is None else data.decode("utf-8")

    def read_bytes(self, path: str) -> bytes | None:
        """Return the raw file content, or None for a missing path or a directory."""
        full = self.resolve(path)
        if not full.is_file():
            logger.debug("Note not found: %s", path)
            return None
        return full.read_bytes()

    def write(self, path: str, content: str) -> VaultFile | None:
        return self.write_bytes(path, content.encode("utf-8"))

    def write_bytes(self, path: str, content: bytes) -> VaultFile | None:
        full = self.resolve(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_bytes(content)
        return self._discovery.scan_single_file(path)

    def delete(self, path: str) -> bool:
        """Delete a note file. Returns False when it did not exist."""
        full = self.resolve(path)
        if not full.is_file():
            return False
        full.unlink()
        self._discovery.scan_single_file(path)
        return True

    def remove_empty_dir(self, path: str) -> bool:
        """Remove a folder that has no entries left. Returns False otherwise."""
        full = self.resolve(path)
        if not full.is_dir() or any(full.iterdir()):
            return False
        full.rmdir()
        self._discovery.scan_single_file(path)
        return True
