"""Remote content provider interface.

Every operation returns a ``Result`` rather than raising: network failures,
unauthorized responses, and unexpected statuses are expected conditions for
an offline-first client and are handled by the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

from vaultkeeper.db.models import FileKind

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success/failure outcome of a remote or engine operation.

    Attributes:
        value: Payload on success (may legitimately be None, e.g. a missing hash).
        error: The failure cause; None on success.
    """

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> Result[T]:
        return cls(error=error)

    def unwrap(self) -> T | None:
        """Return the value, or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value


@dataclass(frozen=True)
class RemoteFile:
    """One entry of a remote folder listing."""

    name: str
    path: str
    content_hash: str
    size: int
    kind: FileKind = "file"
    download_url: str | None = None  # content-fetch locator


class RemoteContentProvider(ABC):
    """List / fetch / push against a remote git-hosted store."""

    @abstractmethod
    def list_contents(self, owner: str, repo: str, path: str = "") -> Result[list[RemoteFile]]:
        """List a remote folder (or a single file as a one-element list)."""

    @abstractmethod
    def fetch_content(self, locator: str) -> Result[bytes]:
        """Fetch a blob's raw bytes by the locator from a listing."""

    @abstractmethod
    def fetch_hash(self, owner: str, repo: str, path: str) -> Result[str | None]:
        """Return the remote blob hash, or a successful None if the path is absent."""

    @abstractmethod
    def push_content(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        known_hash: str | None,
        message: str,
    ) -> Result[str | None]:
        """Create or update *path* with *known_hash* as the expected base.

        *content* is pushed byte for byte. Returns the new remote hash when the provider reports one.
        """
