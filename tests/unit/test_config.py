"""Tests for the vaultkeeper config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from vaultkeeper.config import (
    ConfigError,
    VaultkeeperConfig,
    ensure_global_config,
    load_config,
)
from vaultkeeper.remote.credentials import DEFAULT_TOKEN_ENV


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "VAULTKEEPER_VAULT_ROOT",
        "VAULTKEEPER_EMBEDDING_MODEL",
        "VAULTKEEPER_REMOTE_OWNER",
        "VAULTKEEPER_REMOTE_REPO",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def no_global(tmp_path: Path) -> Path:
    return tmp_path / "nonexistent" / "config.yaml"


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path, no_global: Path) -> None:
    """No config files → all hardcoded defaults."""
    cfg = load_config(tmp_path, global_config_path=no_global)

    assert isinstance(cfg, VaultkeeperConfig)
    assert cfg.vault.root == tmp_path
    assert cfg.vault.db_path == tmp_path / ".vaultkeeper.db"
    assert cfg.vault.journal_dir == "10_Journal"
    assert cfg.remote.branch == "main"
    assert cfg.remote.token_env == DEFAULT_TOKEN_ENV
    assert not cfg.remote.configured
    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.indexing.window == 1000
    assert cfg.indexing.overlap == 200
    assert cfg.search.limit == 3


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_config_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"model": "ollama/nomic-embed-text"}})

    cfg = load_config(tmp_path, global_config_path=global_cfg)

    assert cfg.embedding.model == "ollama/nomic-embed-text"
    assert cfg.search.limit == 3


def test_empty_global_file_gives_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("", encoding="utf-8")

    cfg = load_config(tmp_path, global_config_path=global_cfg)

    assert cfg.embedding.model == "openai/text-embedding-3-small"


def test_vault_config_overrides_global(tmp_path: Path) -> None:
    """Per-vault keys win; untouched global keys in the same section survive."""
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"embedding": {"model": "a/one", "num_retries": 7}})
    _write_yaml(tmp_path / "vaultkeeper.yaml", {"embedding": {"model": "b/two"}})

    cfg = load_config(tmp_path, global_config_path=global_cfg)

    assert cfg.embedding.model == "b/two"
    assert cfg.embedding.num_retries == 7


def test_vault_paths_resolve_against_vault_dir(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(
        tmp_path / "vaultkeeper.yaml",
        {
            "vault": {"root": "notes", "db": "state/index.db", "journal_dir": "Journal/"},
            "embedding": {"asset": "models/m.bin"},
        },
    )

    cfg = load_config(tmp_path, global_config_path=no_global)

    assert cfg.vault.root == tmp_path / "notes"
    assert cfg.vault.db_path == tmp_path / "notes" / "state" / "index.db"
    assert cfg.vault.journal_dir == "Journal"
    assert cfg.embedding.asset == tmp_path / "models" / "m.bin"


def test_remote_section(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(
        tmp_path / "vaultkeeper.yaml",
        {"remote": {"owner": "me", "repo": "notes", "branch": "trunk", "token_env": "MY_TOKEN"}},
    )

    cfg = load_config(tmp_path, global_config_path=no_global)

    assert cfg.remote.configured
    assert (cfg.remote.owner, cfg.remote.repo, cfg.remote.branch) == ("me", "notes", "trunk")
    assert cfg.remote.token_env == "MY_TOKEN"


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


def test_env_overrides_file_values(
    tmp_path: Path, no_global: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_yaml(tmp_path / "vaultkeeper.yaml", {"remote": {"owner": "file", "repo": "r"}})
    monkeypatch.setenv("VAULTKEEPER_REMOTE_OWNER", "env-owner")
    monkeypatch.setenv("VAULTKEEPER_EMBEDDING_MODEL", "env/model")

    cfg = load_config(tmp_path, global_config_path=no_global)

    assert cfg.remote.owner == "env-owner"
    assert cfg.remote.repo == "r"
    assert cfg.embedding.model == "env/model"


def test_vault_root_env_selects_search_dir(
    tmp_path: Path, no_global: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    vault = tmp_path / "v"
    vault.mkdir()
    _write_yaml(vault / "vaultkeeper.yaml", {"search": {"limit": 9}})
    monkeypatch.setenv("VAULTKEEPER_VAULT_ROOT", str(vault))

    cfg = load_config(global_config_path=no_global)

    assert cfg.vault.root == vault
    assert cfg.search.limit == 9


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["api_key", "github_token", "token", "password", "client_secret"])
def test_global_config_rejects_credentials(tmp_path: Path, key: str) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"remote": {key: "leaked"}})

    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(tmp_path, global_config_path=global_cfg)


def test_token_env_is_not_a_credential(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"remote": {"token_env": "X"}, "indexing": {"max_attempts": 2}})

    cfg = load_config(tmp_path, global_config_path=global_cfg)

    assert cfg.remote.token_env == "X"


def test_http_api_url_rejected(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "vaultkeeper.yaml", {"remote": {"api_url": "http://ghe.local/api"}})

    with pytest.raises(ConfigError, match="https"):
        load_config(tmp_path, global_config_path=no_global)


@pytest.mark.parametrize("indexing", [{"window": 100, "overlap": 100}, {"overlap": -1}, {"max_attempts": 0}])
def test_invalid_indexing_rejected(tmp_path: Path, no_global: Path, indexing: dict) -> None:
    _write_yaml(tmp_path / "vaultkeeper.yaml", {"indexing": indexing})

    with pytest.raises(ConfigError):
        load_config(tmp_path, global_config_path=no_global)


def test_non_mapping_file_rejected(tmp_path: Path, no_global: Path) -> None:
    (tmp_path / "vaultkeeper.yaml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path, global_config_path=no_global)


def test_unknown_section_warns(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "vaultkeeper.yaml", {"generation": {"model": "x"}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        load_config(tmp_path, global_config_path=no_global)

    assert any("generation" in str(w.message) for w in caught)


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_private_file(tmp_path: Path) -> None:
    target = tmp_path / "home" / ".vaultkeeper" / "config.yaml"

    path = ensure_global_config(target)

    assert path == target
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    assert stat.S_IMODE(target.parent.stat().st_mode) == 0o700
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["embedding"]["model"] == "openai/text-embedding-3-small"


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("search:\n  limit: 5\n", encoding="utf-8")

    ensure_global_config(target)

    assert target.read_text(encoding="utf-8") == "search:\n  limit: 5\n"


def test_generated_global_config_loads(tmp_path: Path) -> None:
    target = ensure_global_config(tmp_path / "g" / "config.yaml")
    cfg = load_config(tmp_path, global_config_path=target)
    assert cfg.search.limit == 3
