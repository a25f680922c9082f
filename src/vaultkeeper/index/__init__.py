"""Semantic index: chunking, embeddings, delta indexing, similarity search."""

from vaultkeeper.index.chunker import MarkdownChunker, chunk_text
from vaultkeeper.index.embeddings import EmbeddingProvider, LiteLLMEmbeddingProvider
from vaultkeeper.index.indexer import EmbeddingIndexer, IndexCycleReport, IndexerConfig
from vaultkeeper.index.search import VectorSearchEngine, cosine_similarity

__all__ = [
    "EmbeddingIndexer",
    "EmbeddingProvider",
    "IndexCycleReport",
    "IndexerConfig",
    "LiteLLMEmbeddingProvider",
    "MarkdownChunker",
    "VectorSearchEngine",
    "chunk_text",
    "cosine_similarity",
]
