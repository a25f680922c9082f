"""Retrieval-augmented prompt assembly on top of VectorSearchEngine.

Only the context side lives here; sending the prompt to a model is the
caller's business.
"""

from __future__ import annotations

from vaultkeeper.index.search import DEFAULT_LIMIT, VectorSearchEngine

_PROMPT_TEMPLATE = """\
Answer the question using the notes below. If they do not contain the answer, say so.

{context}

Question: {question}"""


def build_context(engine: VectorSearchEngine, query: str, limit: int = DEFAULT_LIMIT) -> list[str]:
    """Return the text of the *limit* chunks most similar to *query*."""
    return [chunk.content for chunk in engine.search(query, limit)]


def build_augmented_prompt(question: str, chunks: list[str]) -> str:
    """Wrap *question* with numbered context chunks; the bare question when there are none."""
    if not chunks:
        return question
    context = "\n\n".join(f"[{i}] {text}" for i, text in enumerate(chunks, start=1))
    return _PROMPT_TEMPLATE.format(context=context, question=question)


def find_sources(engine: VectorSearchEngine, query: str, limit: int = DEFAULT_LIMIT) -> list[str]:
    """Return the distinct note paths behind the top matches, in rank order."""
    seen: list[str] = []
    for chunk in engine.search(query, limit):
        if chunk.file_id not in seen:
            seen.append(chunk.file_id)
    return seen
