"""Wire the engine components for one vault from a VaultkeeperConfig."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from vaultkeeper.config import VAULT_CONFIG_NAME, VaultkeeperConfig
from vaultkeeper.db import open_repository
from vaultkeeper.db.repository import EmbeddingStore, Repository, VaultStateStore
from vaultkeeper.index.embeddings import EmbeddingProvider, LiteLLMEmbeddingProvider
from vaultkeeper.index.indexer import EmbeddingIndexer, IndexerConfig
from vaultkeeper.index.search import ProviderFactory, VectorSearchEngine
from vaultkeeper.remote.base import RemoteContentProvider
from vaultkeeper.remote.credentials import EnvCredentialStore
from vaultkeeper.remote.github import GitHubContentProvider
from vaultkeeper.state import JsonStateFile
from vaultkeeper.sync.coordinator import SyncCoordinator
from vaultkeeper.tasks import TaskRunner
from vaultkeeper.vault.discovery import VaultDiscoveryEngine
from vaultkeeper.vault.notes import NoteStore

logger = logging.getLogger(__name__)

STATE_FILE_NAME = ".vaultkeeper-state.json"


@dataclass
class Services:
    config: VaultkeeperConfig
    repo: Repository
    files: VaultStateStore
    embeddings: EmbeddingStore
    discovery: VaultDiscoveryEngine
    notes: NoteStore
    engine: VectorSearchEngine
    indexer: EmbeddingIndexer
    sync: SyncCoordinator
    state: JsonStateFile
    runner: TaskRunner

    def close(self) -> None:
        self.runner.shutdown()
        self.engine.close()
        self.repo.close()

    def __enter__(self) -> Services:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def default_provider_factory(config: VaultkeeperConfig) -> ProviderFactory:
    """LiteLLM provider factory; a cached model asset is not needed by LiteLLM."""

    def factory(model_path: Path | None) -> EmbeddingProvider:
        if model_path is not None:
            logger.debug("Model asset cached at %s", model_path)
        return LiteLLMEmbeddingProvider(
            model=config.embedding.model,
            num_retries=config.embedding.num_retries,
            api_base=config.embedding.api_base,
        )

    return factory


def build_services(
    config: VaultkeeperConfig,
    provider: RemoteContentProvider | None = None,
    provider_factory: ProviderFactory | None = None,
) -> Services:
    """Open the vault database and construct every engine component.

    Args:
        config: Loaded configuration.
        provider: Remote provider override; defaults to GitHub.
        provider_factory: Embedding provider factory override.
    """
    root = config.vault.root
    root.mkdir(parents=True, exist_ok=True)
    repo = open_repository(config.vault.db_path)
    files = VaultStateStore(repo)
    discovery = VaultDiscoveryEngine(root, files, ignore=[VAULT_CONFIG_NAME])
    notes = NoteStore(discovery)
    engine = VectorSearchEngine(
        EmbeddingStore(repo),
        provider_factory or default_provider_factory(config),
        asset_path=config.embedding.asset,
        cache_dir=config.embedding.cache_dir,
    )
    indexer = EmbeddingIndexer(
        repo,
        discovery,
        engine,
        IndexerConfig(
            window=config.indexing.window,
            overlap=config.indexing.overlap,
            max_attempts=config.indexing.max_attempts,
            retry_delay=config.indexing.retry_delay,
            journal_dir=config.vault.journal_dir,
            model=config.embedding.model,
        ),
    )
    remote = provider or GitHubContentProvider(
        EnvCredentialStore(config.remote.token_env),
        api_url=config.remote.api_url,
        branch=config.remote.branch,
    )
    return Services(
        config=config,
        repo=repo,
        files=files,
        embeddings=EmbeddingStore(repo),
        discovery=discovery,
        notes=notes,
        engine=engine,
        indexer=indexer,
        sync=SyncCoordinator(files, remote, notes),
        state=JsonStateFile(root / STATE_FILE_NAME),
        runner=TaskRunner(),
    )
