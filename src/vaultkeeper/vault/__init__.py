"""Local vault access: discovery scans, frontmatter, note I/O."""

from vaultkeeper.vault.discovery import VaultDiscoveryEngine, normalize_vault_path
from vaultkeeper.vault.frontmatter import NoteMetadata, extract_metadata, strip_frontmatter
from vaultkeeper.vault.notes import NoteStore

__all__ = [
    "NoteMetadata",
    "NoteStore",
    "VaultDiscoveryEngine",
    "extract_metadata",
    "normalize_vault_path",
    "strip_frontmatter",
]
