"""Chunker — split note text into embedding-sized pieces.

All sizes are in characters. Long pieces are cut with a sliding window whose
consecutive windows share exactly ``overlap`` characters; windows are not
stripped, so the shared text is byte-identical.
"""

from __future__ import annotations

import re

from vaultkeeper.vault.frontmatter import strip_frontmatter

DEFAULT_WINDOW = 1000
DEFAULT_OVERLAP = 200

# Matches H1, H2, H3 headings at the start of a line.
_HEADING_RE = re.compile(r"^#{1,3} .+", re.MULTILINE)
_PARAGRAPH_RE = re.compile(r"\n\s*\n")


def chunk_text(text: str, window: int = DEFAULT_WINDOW, overlap: int = DEFAULT_OVERLAP) -> list[str]:
    """Cut *text* into windows of *window* chars advancing by ``window - overlap``.

    Text no longer than *window* is returned as a single chunk. The last
    window ends at the end of the text.
    """
    if window < 1:
        raise ValueError("window must be >= 1")
    if not 0 <= overlap < window:
        raise ValueError("overlap must be in [0, window)")
    if not text:
        return []
    if len(text) <= window:
        return [text]

    step = window - overlap
    chunks: list[str] = []
    pos = 0
    while True:
        end = min(pos + window, len(text))
        chunks.append(text[pos:end])
        if end >= len(text):
            break
        pos += step
    return chunks


class MarkdownChunker:
    """Split Markdown on H1/H2/H3 heading boundaries.

    Strategy:
    - Frontmatter is removed first.
    - With headings: each heading plus its body is a section; text before
      the first heading is its own section.
    - Without headings: paragraphs (blank-line separated) are packed into
      pieces up to the window size.
    - Any piece longer than the window is cut with the sliding window.
    """

    def __init__(self, window: int = DEFAULT_WINDOW, overlap: int = DEFAULT_OVERLAP) -> None:
        if window < 1:
            raise ValueError("window must be >= 1")
        if not 0 <= overlap < window:
            raise ValueError("overlap must be in [0, window)")
        self.window = window
        self.overlap = overlap

    def chunk(self, content: str) -> list[str]:
        body = strip_frontmatter(content)
        if not body.strip():
            return []

        sections = self._split_on_headings(body)
        if not sections:
            sections = self._pack_paragraphs(body)
        return self._fit(sections)

    def _split_on_headings(self, content: str) -> list[str]:
        """Return heading sections, or an empty list when there are no headings."""
        matches = list(_HEADING_RE.finditer(content))
        if not matches:
            return []

        sections: list[str] = []
        if matches[0].start() > 0:
            preamble = content[: matches[0].start()].strip()
            if preamble:
                sections.append(preamble)

        for i, match in enumerate(matches):
            end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
            section = content[match.start() : end].strip()
            if section:
                sections.append(section)
        return sections

    def _pack_paragraphs(self, content: str) -> list[str]:
        paragraphs = [p.strip() for p in _PARAGRAPH_RE.split(content) if p.strip()]
        pieces: list[str] = []
        current = ""
        for para in paragraphs:
            candidate = f"{current}\n\n{para}" if current else para
            if current and len(candidate) > self.window:
                pieces.append(current)
                current = para
            else:
                current = candidate
        if current:
            pieces.append(current)
        return pieces

    def _fit(self, pieces: list[str]) -> list[str]:
        """Window every piece that exceeds the window size; drop blank pieces."""
        out: list[str] = []
        for piece in pieces:
            if not piece.strip():
                continue
            if len(piece) <= self.window:
                out.append(piece)
            else:
                out.extend(chunk_text(piece, self.window, self.overlap))
        return out
