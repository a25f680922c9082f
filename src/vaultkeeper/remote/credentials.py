"""Credential stores for the remote provider.

The token is opaque to vaultkeeper. It comes from an external secret store
(environment variable or the caller) and is dropped on a 401 so the UI
layer can force re-authentication.
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_ENV = "VAULTKEEPER_GITHUB_TOKEN"


class CredentialStore(ABC):
    """Holds the bearer token for the remote provider."""

    @abstractmethod
    def get(self) -> str | None:
        """Return the cached token, or None when not authenticated."""

    @abstractmethod
    def set(self, token: str) -> None:
        """Cache a new token."""

    @abstractmethod
    def clear(self) -> None:
        """Invalidate the cached token."""


class MemoryCredentialStore(CredentialStore):
    """Process-local token holder, created at unlock and cleared at lock."""

    def __init__(self, token: str | None = None) -> None:
        self._lock = threading.Lock()
        self._token = token

    def get(self) -> str | None:
        with self._lock:
            return self._token

    def set(self, token: str) -> None:
        with self._lock:
            self._token = token

    def clear(self) -> None:
        with self._lock:
            self._token = None


class EnvCredentialStore(MemoryCredentialStore):
    """Seeded from an environment variable; clearing never touches the environment."""

    def __init__(self, env_var: str = DEFAULT_TOKEN_ENV) -> None:
        super().__init__(os.environ.get(env_var) or None)
        self.env_var = env_var

    def clear(self) -> None:
        logger.warning(
            "Remote credential rejected; unset %s or replace the token to re-authenticate.",
            self.env_var,
        )
        super().clear()
