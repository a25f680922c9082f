"""vaultkeeper init — create the vault database and config files.

Creates:
  <vault>/.vaultkeeper.db        — file index + embedding store with schema
  <vault>/vaultkeeper.yaml       — per-vault config template (if missing)
  ~/.vaultkeeper/config.yaml     — global defaults (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from vaultkeeper.cli.common import console, load_cli_config
from vaultkeeper.config import ensure_global_config
from vaultkeeper.db.connection import Database
from vaultkeeper.db.schema import initialize

_VAULT_YAML = """\
# vaultkeeper per-vault configuration.
# The GitHub token is read from the environment variable named by remote.token_env.

vault:
  journal_dir: 10_Journal

# remote:
#   owner: your-github-user
#   repo: your-vault-repo
#   branch: main

embedding:
  model: openai/text-embedding-3-small

indexing:
  window: 1000
  overlap: 200
"""


def init_cmd(
    vault: Annotated[
        Path,
        typer.Argument(help="Vault directory to initialize. Defaults to current directory."),
    ] = Path("."),
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Initialize a vault: database, vaultkeeper.yaml and global config."""
    vault = vault.resolve()
    vault.mkdir(parents=True, exist_ok=True)

    cfg_yaml = vault / "vaultkeeper.yaml"
    if not cfg_yaml.exists():
        cfg_yaml.write_text(_VAULT_YAML, encoding="utf-8")
        console.print("  [green]✓[/] vaultkeeper.yaml")

    cfg = load_cli_config(vault)
    db_path = cfg.vault.db_path
    existed = db_path.exists()
    conn = Database(db_path).connect()
    initialize(conn)
    conn.close()
    if existed:
        console.print(f"  [green]✓[/] {db_path.name} (already present, schema up to date)")
    else:
        console.print(f"  [green]✓[/] {db_path.name}")

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print(f"\n[bold green]✓ Vault initialized at {vault}.[/]")
    console.print("\nNext steps:")
    console.print("  1. vaultkeeper scan      (index the notes on disk)")
    console.print("  2. vaultkeeper index     (embed notes for search)")
    console.print("  3. vaultkeeper pull      (after configuring remote: in vaultkeeper.yaml)")
