"""Fixtures for CLI tests: an initialised vault wired to in-memory fakes."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from fakes import FakeEmbeddingProvider, FakeRemoteProvider
from vaultkeeper.cli.main import app
from vaultkeeper.services import build_services


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("vaultkeeper.config._GLOBAL_CONFIG_PATH", tmp_path / "home" / "config.yaml")
    for var in (
        "VAULTKEEPER_VAULT_ROOT",
        "VAULTKEEPER_EMBEDDING_MODEL",
        "VAULTKEEPER_REMOTE_OWNER",
        "VAULTKEEPER_REMOTE_REPO",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def fake_remote() -> FakeRemoteProvider:
    return FakeRemoteProvider()


@pytest.fixture
def fake_embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def wired(monkeypatch: pytest.MonkeyPatch, fake_remote, fake_embedder) -> dict:
    """Route build_services through the fakes; tests may swap the factory."""
    hooks = {"factory": lambda _path: fake_embedder}

    def _build(config):
        return build_services(config, provider=fake_remote, provider_factory=hooks["factory"])

    monkeypatch.setattr("vaultkeeper.cli.common.build_services", _build)
    return hooks


@pytest.fixture
def vault(tmp_path: Path, runner: CliRunner, wired) -> Path:
    """An initialised vault with instant indexing retries."""
    root = tmp_path / "vault"
    result = runner.invoke(app, ["init", str(root), "--global-config", str(tmp_path / "home" / "config.yaml")])
    assert result.exit_code == 0, result.output
    with (root / "vaultkeeper.yaml").open("a", encoding="utf-8") as fh:
        fh.write("  retry_delay: 0\n")
    return root


@pytest.fixture
def with_remote(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VAULTKEEPER_REMOTE_OWNER", "me")
    monkeypatch.setenv("VAULTKEEPER_REMOTE_REPO", "notes")
