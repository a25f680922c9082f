"""Remote content providers (git-hosted vault storage)."""

from vaultkeeper.remote.base import RemoteContentProvider, RemoteFile, Result
from vaultkeeper.remote.credentials import (
    CredentialStore,
    EnvCredentialStore,
    MemoryCredentialStore,
)
from vaultkeeper.remote.github import GitHubContentProvider

__all__ = [
    "CredentialStore",
    "EnvCredentialStore",
    "GitHubContentProvider",
    "MemoryCredentialStore",
    "RemoteContentProvider",
    "RemoteFile",
    "Result",
]
