"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from fakes import FakeEmbeddingProvider, FakeRemoteProvider
from vaultkeeper.db.connection import Database
from vaultkeeper.db.repository import EmbeddingStore, Repository, VaultStateStore
from vaultkeeper.db.schema import initialize
from vaultkeeper.index.search import VectorSearchEngine
from vaultkeeper.vault.discovery import VaultDiscoveryEngine
from vaultkeeper.vault.notes import NoteStore


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".vaultkeeper.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def files(repo):
    return VaultStateStore(repo)


@pytest.fixture
def embeddings(repo):
    return EmbeddingStore(repo)


@pytest.fixture
def vault_root(tmp_path):
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def discovery(vault_root, files):
    return VaultDiscoveryEngine(vault_root, files)


@pytest.fixture
def notes(discovery):
    return NoteStore(discovery)


@pytest.fixture
def remote():
    return FakeRemoteProvider()


@pytest.fixture
def embedder():
    return FakeEmbeddingProvider()


@pytest.fixture
def engine(embeddings, embedder):
    return VectorSearchEngine(embeddings, lambda _path: embedder)
