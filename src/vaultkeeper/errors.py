"""Exception hierarchy shared across the sync and indexing engine.

Expected protocol states (missing remote hash, engine not ready, empty search)
are reported through return values, not exceptions. The classes below are
either carried inside a ``Result`` or raised internally and absorbed at the
component boundary.
"""

from __future__ import annotations


class VaultkeeperError(Exception):
    """Base class for all vaultkeeper errors."""


# ---------------------------------------------------------------------------
# Remote / sync
# ---------------------------------------------------------------------------


class SyncError(VaultkeeperError):
    """A remote operation failed."""


class NetworkFailure(SyncError):
    """The remote could not be reached (DNS, timeout, connection reset)."""


class Unauthorized(SyncError):
    """The remote rejected the credential (HTTP 401).

    The cached credential has already been cleared when this is raised;
    the caller must re-authenticate before retrying.
    """


class RemoteError(SyncError):
    """The remote answered with an unexpected HTTP status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


# ---------------------------------------------------------------------------
# Embedding / indexing
# ---------------------------------------------------------------------------


class CorruptAssetError(VaultkeeperError):
    """The bundled model asset or its cached copy is truncated (< 1 KiB)."""


class EngineNotReady(VaultkeeperError):
    """The embedding provider could not be initialised."""


class DimensionMismatchError(VaultkeeperError):
    """A vector's length differs from the dimensionality fixed for the store."""


class TransactionAborted(VaultkeeperError):
    """A per-file transaction was rolled back."""
