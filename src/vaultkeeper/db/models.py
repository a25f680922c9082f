"""Domain models for the vaultkeeper database layer."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Literal

FileKind = Literal["file", "dir"]


@dataclass
class VaultFile:
    path: str
    name: str
    kind: FileKind = "file"
    remote_hash: str | None = None
    download_url: str | None = None  # content-fetch locator from the last listing
    is_dirty: bool = False
    last_synced_at: float | None = None
    local_modified_at: float | None = None
    tags: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"

    @property
    def is_markdown(self) -> bool:
        return self.kind == "file" and self.path.lower().endswith((".md", ".markdown"))


@dataclass
class EmbeddingChunk:
    file_id: str
    content: str
    vector: list[float]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    last_updated: float = field(default_factory=time.time)
