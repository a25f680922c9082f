"""Versioned user-state record persisted as one JSON file.

``JsonStateFile.update(fn)`` runs read → mutate → write under a lock, so
concurrent tasks never lose each other's changes. Older on-disk shapes are
upgraded by ``_migrate`` when read.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)

STATE_VERSION = 1


@dataclass
class UserState:
    """Per-vault preferences and bookkeeping outside the database."""

    version: int = STATE_VERSION
    last_index_time: float = 0.0
    full_reindex_requested: bool = False
    last_pull_at: float | None = None
    last_push_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> UserState:
        d = _migrate(d)
        known = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def _migrate(d: dict[str, Any]) -> dict[str, Any]:
    """Upgrade an on-disk state dict to STATE_VERSION.

    v0 had no ``version`` key and stored ``lastIndexTime`` in milliseconds.
    """
    d = dict(d)
    version = int(d.get("version", 0))
    if version == 0:
        millis = d.pop("lastIndexTime", None)
        if millis is not None and "last_index_time" not in d:
            d["last_index_time"] = float(millis) / 1000.0
        d["full_reindex_requested"] = bool(d.pop("fullReindexRequested", False))
        d["version"] = 1
        version = 1
    if version > STATE_VERSION:
        logger.warning("State file version %d is newer than supported %d", version, STATE_VERSION)
    return d


class JsonStateFile:
    """A UserState record stored at *path*.

    A missing or unreadable file yields a default ``UserState``.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> UserState:
        with self._lock:
            return self._read()

    def update(self, fn: Callable[[UserState], None]) -> UserState:
        """Apply *fn* to the current state and persist the result atomically."""
        with self._lock:
            state = self._read()
            fn(state)
            self._write(state)
            return state

    def _read(self) -> UserState:
        if not self.path.exists():
            return UserState()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return UserState()
        if not isinstance(data, dict):
            return UserState()
        return UserState.from_dict(data)

    def _write(self, state: UserState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(state.to_dict(), indent=2) + "\n", encoding="utf-8")
        os.replace(tmp, self.path)
