"""vaultkeeper status — file index, dirty set and embedding store overview."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from vaultkeeper.cli.common import VaultOption, console, open_services
from vaultkeeper.db.repository import STATE_EMBEDDING_MODEL, STATE_LAST_INDEX_TIME
from vaultkeeper.services import Services


def status_cmd(
    vault: VaultOption = None,
    show_dirty: Annotated[
        bool,
        typer.Option("--dirty", help="List every file with unpushed local changes."),
    ] = False,
) -> None:
    """Show vault status: files, unpushed changes and the semantic index."""
    services = open_services(vault)
    with services:
        _show_vault_panel(services)
        _show_index_table(services)
        if show_dirty:
            _show_dirty(services)


def _fmt_time(value: float | str | None) -> str:
    if value in (None, "", 0, 0.0):
        return "never"
    return datetime.fromtimestamp(float(value)).strftime("%Y-%m-%d %H:%M:%S")


def _show_vault_panel(services: Services) -> None:
    cfg = services.config
    remote = f"{cfg.remote.owner}/{cfg.remote.repo}@{cfg.remote.branch}" if cfg.remote.configured else "(not configured)"
    state = services.state.load()
    lines = [
        f"Vault:     [bold]{cfg.vault.root}[/]",
        f"Database:  {cfg.vault.db_path}",
        f"Remote:    {remote}",
        f"Last pull: {_fmt_time(state.last_pull_at)}",
        f"Last push: {_fmt_time(state.last_push_at)}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Vault[/]", expand=False))


def _show_index_table(services: Services) -> None:
    table = Table(title="Index", show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    dirty = services.files.count_dirty()
    table.add_row("Files", str(services.files.count()))
    table.add_row("Unpushed", f"[yellow]{dirty}[/]" if dirty else "0")
    table.add_row("Chunks", str(services.embeddings.count()))
    table.add_row("Dimensions", str(services.embeddings.dimensions() or "-"))
    table.add_row("Model", services.repo.get_state(STATE_EMBEDDING_MODEL) or "-")
    table.add_row("Last index", _fmt_time(services.repo.get_state(STATE_LAST_INDEX_TIME)))
    console.print(table)


def _show_dirty(services: Services) -> None:
    dirty = services.files.list_dirty()
    if not dirty:
        console.print("[green]No unpushed changes.[/]")
        return
    for f in dirty:
        marker = "new" if f.remote_hash is None else "modified"
        console.print(f"  [yellow]{marker:>8}[/]  {f.path}")
