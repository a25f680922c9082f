"""vaultkeeper — offline-first Markdown vault sync with a semantic index."""

__version__ = "0.1.0"
