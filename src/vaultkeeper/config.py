"""vaultkeeper configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (VAULTKEEPER_VAULT_ROOT, VAULTKEEPER_EMBEDDING_MODEL,
                             VAULTKEEPER_REMOTE_OWNER, VAULTKEEPER_REMOTE_REPO)
  3. Per-vault vaultkeeper.yaml  (in the vault root)
  4. Global ~/.vaultkeeper/config.yaml  (defaults only — no credentials)
  5. Hardcoded defaults

The GitHub token is never read from a config file; ``remote.token_env`` names
the environment variable that holds it.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from vaultkeeper.remote.credentials import DEFAULT_TOKEN_ENV

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".vaultkeeper"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
VAULT_CONFIG_NAME: str = "vaultkeeper.yaml"
DEFAULT_DB_NAME: str = ".vaultkeeper.db"

# Fields that suggest a credential are forbidden in global config.
# Does NOT match legitimate keys like token_env or max_attempts.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["vault", "remote", "embedding", "indexing", "search"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class VaultCfg:
    """Local vault location (vaultkeeper.yaml: vault:).

    Attributes:
        root: Vault directory holding the Markdown notes.
        db: SQLite database path; defaults to ``<root>/.vaultkeeper.db``.
        journal_dir: Folder of daily notes; today's note is never embedded mid-edit.
    """

    root: Path = field(default_factory=Path.cwd)
    db: Path | None = None
    journal_dir: str = "10_Journal"

    @property
    def db_path(self) -> Path:
        return self.db if self.db is not None else self.root / DEFAULT_DB_NAME


@dataclass
class RemoteCfg:
    """Remote repository (vaultkeeper.yaml: remote:)."""

    owner: str = ""
    repo: str = ""
    branch: str = "main"
    api_url: str = "https://api.github.com"
    token_env: str = DEFAULT_TOKEN_ENV

    @property
    def configured(self) -> bool:
        return bool(self.owner and self.repo)


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (vaultkeeper.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    asset: Path | None = None  # optional local model file, copied into cache_dir
    cache_dir: Path = field(default_factory=lambda: _GLOBAL_CONFIG_DIR / "cache")
    num_retries: int = 3
    api_base: str | None = None


@dataclass
class IndexingCfg:
    """Chunking and retry settings (vaultkeeper.yaml: indexing:)."""

    window: int = 1000
    overlap: int = 200
    max_attempts: int = 3
    retry_delay: float = 2.0


@dataclass
class SearchCfg:
    limit: int = 3


@dataclass
class VaultkeeperConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    vault: VaultCfg = field(default_factory=VaultCfg)
    remote: RemoteCfg = field(default_factory=RemoteCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    indexing: IndexingCfg = field(default_factory=IndexingCfg)
    search: SearchCfg = field(default_factory=SearchCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any credential-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _validate_api_url(url: str) -> None:
    if not url.startswith("https://"):
        raise ConfigError(
            f"remote.api_url must use https: '{url}'\n"
            "  Example: remote.api_url: https://api.github.com"
        )


def _validate_indexing(cfg: IndexingCfg) -> None:
    if cfg.window < 1 or not 0 <= cfg.overlap < cfg.window:
        raise ConfigError(
            f"indexing.overlap ({cfg.overlap}) must be >= 0 and smaller than "
            f"indexing.window ({cfg.window})."
        )
    if cfg.max_attempts < 1:
        raise ConfigError("indexing.max_attempts must be >= 1.")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _resolve(value: Any, base: Path) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else base / path


def _cfg_from_dict(data: dict[str, Any], vault_dir: Path) -> VaultkeeperConfig:
    """Build a *VaultkeeperConfig* from a merged raw YAML dict.

    Relative paths resolve against *vault_dir*.
    """
    cfg = VaultkeeperConfig(vault=VaultCfg(root=vault_dir))

    if "vault" in data:
        v = data["vault"] or {}
        root = _resolve(v["root"], vault_dir) if v.get("root") else vault_dir
        cfg.vault = VaultCfg(
            root=root,
            db=_resolve(v["db"], root) if v.get("db") else None,
            journal_dir=str(v.get("journal_dir", cfg.vault.journal_dir)).strip("/"),
        )

    if "remote" in data:
        r = data["remote"] or {}
        cfg.remote = RemoteCfg(
            owner=str(r.get("owner", cfg.remote.owner)),
            repo=str(r.get("repo", cfg.remote.repo)),
            branch=str(r.get("branch", cfg.remote.branch)),
            api_url=str(r.get("api_url", cfg.remote.api_url)),
            token_env=str(r.get("token_env", cfg.remote.token_env)),
        )

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            asset=_resolve(e["asset"], vault_dir) if e.get("asset") else None,
            cache_dir=(
                _resolve(e["cache_dir"], vault_dir)
                if e.get("cache_dir")
                else cfg.embedding.cache_dir
            ),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
            api_base=e.get("api_base") or None,
        )

    if "indexing" in data:
        i = data["indexing"] or {}
        cfg.indexing = IndexingCfg(
            window=int(i.get("window", cfg.indexing.window)),
            overlap=int(i.get("overlap", cfg.indexing.overlap)),
            max_attempts=int(i.get("max_attempts", cfg.indexing.max_attempts)),
            retry_delay=float(i.get("retry_delay", cfg.indexing.retry_delay)),
        )

    if "search" in data:
        s = data["search"] or {}
        cfg.search = SearchCfg(limit=int(s.get("limit", cfg.search.limit)))

    return cfg


def _apply_env_overrides(cfg: VaultkeeperConfig) -> VaultkeeperConfig:
    """Apply VAULTKEEPER_* model and remote overrides (layer 2)."""
    if model := os.environ.get("VAULTKEEPER_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if owner := os.environ.get("VAULTKEEPER_REMOTE_OWNER"):
        cfg.remote.owner = owner
    if repo := os.environ.get("VAULTKEEPER_REMOTE_REPO"):
        cfg.remote.repo = repo
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    vault_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> VaultkeeperConfig:
    """Load and return a merged *VaultkeeperConfig*.

    Applies layers in order: global → per-vault → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        vault_dir: Directory to search for *vaultkeeper.yaml*. Defaults to
            ``$VAULTKEEPER_VAULT_ROOT`` or the CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains credential-like fields, the
            API URL is not https, or the indexing window is invalid.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    env_root = os.environ.get("VAULTKEEPER_VAULT_ROOT")
    if vault_dir is not None:
        search_dir = vault_dir
    elif env_root:
        search_dir = Path(env_root).expanduser()
    else:
        search_dir = Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-vault config
    vault_cfg_path = search_dir / VAULT_CONFIG_NAME
    if vault_cfg_path.exists():
        raw_vault = _read_yaml(vault_cfg_path)
        _warn_unknown_keys(raw_vault, vault_cfg_path)
        merged = _deep_merge(merged, raw_vault)

    cfg = _cfg_from_dict(merged, search_dir)

    # Layer 3: env var overrides (VAULTKEEPER_VAULT_ROOT already chose search_dir)
    cfg = _apply_env_overrides(cfg)

    _validate_api_url(cfg.remote.api_url)
    _validate_indexing(cfg.indexing)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.vaultkeeper/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# vaultkeeper global configuration — defaults only.\n"
            "# NEVER store tokens here — use environment variables:\n"
            f"#   export {DEFAULT_TOKEN_ENV}=ghp_...\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "\n"
            "search:\n"
            "  limit: 3\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
