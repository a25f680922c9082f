"""Brute-force semantic search over the embedding store.

The embedding provider is created lazily, once, under a lock. When a model
asset is configured it is first copied into the cache directory and checked
for truncation; a failed initialisation is remembered until ``reset()``, and
callers see it as ``EngineNotReady`` rather than an exception.
"""

from __future__ import annotations

import logging
import math
import shutil
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Callable

from vaultkeeper.db.models import EmbeddingChunk
from vaultkeeper.db.repository import EmbeddingStore
from vaultkeeper.errors import CorruptAssetError, EngineNotReady
from vaultkeeper.index.embeddings import EmbeddingProvider
from vaultkeeper.remote.base import Result

logger = logging.getLogger(__name__)

# Anything smaller is a truncated download or an LFS pointer, not a model.
MIN_ASSET_BYTES = 1024
DEFAULT_LIMIT = 3

ProviderFactory = Callable[[Path | None], EmbeddingProvider]


def cosine_similarity(u: Sequence[float], v: Sequence[float]) -> float:
    """``(u·v) / (|u|·|v|)``; 0.0 for mismatched lengths or a zero vector."""
    if len(u) != len(v) or not u:
        return 0.0
    dot = 0.0
    norm_u = 0.0
    norm_v = 0.0
    for a, b in zip(u, v):
        dot += a * b
        norm_u += a * a
        norm_v += b * b
    if norm_u == 0.0 or norm_v == 0.0:
        return 0.0
    score = dot / (math.sqrt(norm_u) * math.sqrt(norm_v))
    if not math.isfinite(score):
        return 0.0
    return max(-1.0, min(1.0, score))


class VectorSearchEngine:
    """Embed queries and rank stored chunks by cosine similarity.

    Args:
        store: Chunk store to search.
        provider_factory: Builds the embedding provider; receives the cached
            model path when an asset is configured, else None.
        asset_path: Optional model asset to copy into *cache_dir* before init.
        cache_dir: Where the asset copy lives (required with *asset_path*).
    """

    def __init__(
        self,
        store: EmbeddingStore,
        provider_factory: ProviderFactory,
        asset_path: Path | str | None = None,
        cache_dir: Path | str | None = None,
    ) -> None:
        self._store = store
        self._factory = provider_factory
        self._asset = Path(asset_path) if asset_path else None
        self._cache_dir = Path(cache_dir) if cache_dir else None
        self._lock = threading.Lock()
        self._provider: EmbeddingProvider | None = None
        self._init_error: Exception | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._provider is not None

    @property
    def init_error(self) -> Exception | None:
        """The remembered initialisation failure, if any."""
        return self._init_error

    def reset(self) -> None:
        """Forget the provider and any remembered init failure."""
        with self._lock:
            if self._provider is not None:
                self._provider.close()
            self._provider = None
            self._init_error = None

    def close(self) -> None:
        self.reset()

    def _get_provider(self) -> EmbeddingProvider | None:
        with self._lock:
            if self._provider is not None:
                return self._provider
            if self._init_error is not None:
                return None
            try:
                model_path = self._setup_model_file(self._asset) if self._asset else None
                self._provider = self._factory(model_path)
            except Exception as exc:  # any init failure leaves the engine not-ready
                logger.error("Embedding engine init failed: %s", exc)
                self._init_error = exc
                return None
            logger.debug("Embedding engine ready")
            return self._provider

    def _setup_model_file(self, asset: Path) -> Path:
        """Copy *asset* into the cache, rejecting truncated files."""
        cache_dir = self._cache_dir or asset.parent / ".cache"
        cache_dir.mkdir(parents=True, exist_ok=True)
        cached = cache_dir / asset.name

        if cached.exists() and cached.stat().st_size < MIN_ASSET_BYTES:
            logger.warning("Cached model %s is truncated; deleting", cached)
            cached.unlink()

        for attempt in (1, 2):
            if not cached.exists():
                if asset.stat().st_size < MIN_ASSET_BYTES:
                    raise CorruptAssetError(
                        f"Model asset {asset} is smaller than {MIN_ASSET_BYTES} bytes"
                    )
                logger.debug("Copying %s to %s", asset, cached)
                shutil.copyfile(asset, cached)
            if cached.stat().st_size >= MIN_ASSET_BYTES:
                return cached
            cached.unlink()
            logger.warning("Model copy truncated (attempt %d)", attempt)

        raise CorruptAssetError(f"Model copy {cached} is still truncated after re-copy")

    # ------------------------------------------------------------------
    # Embedding / search
    # ------------------------------------------------------------------

    def embed(self, text: str) -> Result[list[float]]:
        provider = self._get_provider()
        if provider is None:
            return Result.failure(EngineNotReady(f"Embedding engine not ready: {self._init_error}"))
        try:
            return Result.success(provider.embed(text))
        except Exception as exc:  # provider errors are reported, never raised
            return Result.failure(exc)

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> list[EmbeddingChunk]:
        """Return the *limit* chunks most similar to *query*, best first."""
        return [chunk for chunk, _ in self.search_scored(query, limit)]

    def search_scored(
        self, query: str, limit: int = DEFAULT_LIMIT
    ) -> list[tuple[EmbeddingChunk, float]]:
        if limit <= 0 or not query.strip():
            return []
        embedded = self.embed(query)
        if not embedded.ok:
            logger.warning("Query embedding failed: %s", embedded.error)
            return []

        qvec = embedded.value or []
        scored = [(chunk, cosine_similarity(qvec, chunk.vector)) for chunk in self._store.all()]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:limit]
