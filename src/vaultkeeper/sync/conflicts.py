"""Conflict resolution for diverging local/remote content.

Both versions arrive as raw bytes. Text files that decode as UTF-8 get a
marker-delimited document holding both versions; the user resolves the
markers on the next edit. Every other file keeps the local content and
preserves the remote version byte for byte as a side file. No strategy
discards data, and none performs a three-way merge against the common
ancestor.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Union

logger = logging.getLogger(__name__)

_TEXT_EXTS = (".md", ".markdown", ".txt")

LOCAL_MARKER = "<<<<<<< LOCAL"
SEPARATOR = "======="
REMOTE_MARKER = ">>>>>>> REMOTE"


@dataclass(frozen=True)
class SideFile:
    """An auxiliary file preserving the losing side of a conflict."""

    path: str
    content: bytes


@dataclass(frozen=True)
class Resolved:
    content: bytes


@dataclass(frozen=True)
class Conflict:
    resolved_content: bytes
    side_files: list[SideFile] = field(default_factory=list)


ConflictOutcome = Union[Resolved, Conflict]


class ConflictResolver:
    """Decide how to reconcile one file's local and remote versions.

    Args:
        clock: Returns the timestamp used in side-file names (injectable for tests).
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock

    def resolve(
        self,
        path: str,
        local: bytes,
        remote: bytes,
        base: bytes = b"",
    ) -> ConflictOutcome:
        """Reconcile *local* and *remote* for *path*.

        *base* (the common ancestor, when known) is accepted for interface
        stability but not used.
        """
        if local == remote:
            return Resolved(local)

        logger.info("Resolving conflict for %s", path)
        if path.lower().endswith(_TEXT_EXTS):
            try:
                merged = merge_with_markers(local.decode("utf-8"), remote.decode("utf-8"))
            except UnicodeDecodeError:
                logger.warning("%s is not UTF-8 text; keeping both copies", path)
            else:
                return Resolved(merged.encode("utf-8"))

        return Conflict(
            resolved_content=local,
            side_files=[SideFile(self.conflict_path(path, "remote"), remote)],
        )

    def conflict_path(self, original: str, side: str) -> str:
        """``notes/a.bin`` → ``notes/a.conflicted.<side>.<YYYYmmdd_HHMMSS>.bin``."""
        stamp = self._clock().strftime("%Y%m%d_%H%M%S")
        head, name = posixpath.split(original)
        stem, dot, ext = name.rpartition(".")
        if not dot or not stem:
            # No extension (or a dotfile such as ".env").
            new_name = f"{name}.conflicted.{side}.{stamp}"
        else:
            new_name = f"{stem}.conflicted.{side}.{stamp}.{ext}"
        return posixpath.join(head, new_name) if head else new_name


def merge_with_markers(local: str, remote: str) -> str:
    """Concatenate both versions between git-style conflict markers."""
    return f"{LOCAL_MARKER}\n{local}\n{SEPARATOR}\n{remote}\n{REMOTE_MARKER}\n"
