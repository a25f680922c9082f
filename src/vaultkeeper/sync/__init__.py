"""Remote synchronisation: pull listings, push dirty files, resolve conflicts."""

from vaultkeeper.sync.conflicts import Conflict, ConflictResolver, Resolved, SideFile
from vaultkeeper.sync.coordinator import PullReport, PushReport, SyncCoordinator

__all__ = [
    "Conflict",
    "ConflictResolver",
    "PullReport",
    "PushReport",
    "Resolved",
    "SideFile",
    "SyncCoordinator",
]
