"""YAML frontmatter parsing for Obsidian-style notes.

All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

# A YAML block delimited by '---' lines at the very start of the file.
_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


@dataclass
class NoteMetadata:
    """Typed view of the frontmatter keys the index cares about.

    Attributes:
        tags: Normalised tag list (no leading '#', no duplicates, order kept).
        aliases: Alternative note titles.
        extra: Remaining scalar keys (mood_score, created_at, ...).
    """

    tags: list[str] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)


def split_frontmatter(content: str) -> tuple[str, str]:
    """Return ``(yaml_block, body)``; the block is empty when there is none."""
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return "", content
    return match.group(1), content[match.end() :]


def extract_frontmatter(content: str) -> dict[str, Any]:
    """Parse the frontmatter block into a dict.

    Returns an empty dict when there is no block or it is not a mapping.

    Raises:
        yaml.YAMLError: If the block is not valid YAML.
    """
    block, _ = split_frontmatter(content)
    if not block.strip():
        return {}
    data = yaml.safe_load(block)
    return data if isinstance(data, dict) else {}


def strip_frontmatter(content: str) -> str:
    """Remove the leading frontmatter block, if any."""
    return split_frontmatter(content)[1]


def extract_metadata(content: str) -> NoteMetadata:
    """Build a NoteMetadata from the note's frontmatter."""
    data = extract_frontmatter(content)
    extra = {
        str(k): v
        for k, v in data.items()
        if k not in ("tags", "tag", "aliases", "alias") and _is_scalar(v)
    }
    return NoteMetadata(
        tags=_normalize_tags(data.get("tags", data.get("tag"))),
        aliases=_as_str_list(data.get("aliases", data.get("alias"))),
        extra=extra,
    )


def _normalize_tags(raw: Any) -> list[str]:
    tags: list[str] = []
    for item in _as_str_list(raw, split=True):
        tag = item.lstrip("#").strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _as_str_list(raw: Any, split: bool = False) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        if split:
            return [t for t in re.split(r"[,\s]+", raw) if t]
        return [raw]
    if isinstance(raw, (list, tuple)):
        return [str(x) for x in raw if x is not None]
    return [str(raw)]


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool, datetime.date))
