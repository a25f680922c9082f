"""vaultkeeper pull / push — synchronise the vault with its remote repository."""

from __future__ import annotations

import time
from typing import Annotated

import typer

from vaultkeeper.cli.common import VaultOption, console, open_services, require_remote, run_cancellable
from vaultkeeper.cli.errors import err_sync_failure
from vaultkeeper.state import UserState


def pull_cmd(
    vault: VaultOption = None,
    path: Annotated[
        str,
        typer.Option("--path", help="Remote folder to pull (default: whole vault)."),
    ] = "",
) -> None:
    """Refresh the file index from the remote and download changed files."""
    services = open_services(vault)
    with services:
        cfg = services.config
        require_remote(cfg)
        services.discovery.reindex_all(0.0)
        result = run_cancellable(
            services,
            "Pulling…",
            services.sync.pull,
            cfg.remote.owner,
            cfg.remote.repo,
            path,
        )
        if not result.ok:
            console.print(err_sync_failure(result.error, cfg.remote.token_env))
            raise typer.Exit(1)

        report = result.value

        def _stamp(state: UserState) -> None:
            state.last_pull_at = time.time()

        services.state.update(_stamp)
        console.print(
            f"[green]✓[/] {report.listed} remote entries, {len(report.downloaded)} downloaded."
        )
        for p in report.removed:
            console.print(f"  [dim]deleted[/]  {p} (removed from the remote)")
        for p in report.conflicts:
            console.print(f"  [yellow]conflict[/]  {p} (resolve the markers, then push)")
        if report.cancelled:
            console.print("[yellow]Pull cancelled; run again to finish.[/]")


def push_cmd(
    vault: VaultOption = None,
    message: Annotated[
        str | None,
        typer.Option("--message", "-m", help="Commit message (default: 'Update <path>')."),
    ] = None,
) -> None:
    """Push every file with unpushed local changes."""
    services = open_services(vault)
    with services:
        cfg = services.config
        require_remote(cfg)
        services.discovery.reindex_all(0.0)
        result = run_cancellable(
            services,
            "Pushing…",
            services.sync.push_dirty_files,
            cfg.remote.owner,
            cfg.remote.repo,
            message,
        )
        if not result.ok:
            console.print(err_sync_failure(result.error, cfg.remote.token_env))
            remaining = services.files.count_dirty()
            console.print(f"  {remaining} file(s) still unpushed.")
            raise typer.Exit(1)

        report = result.value

        def _stamp(state: UserState) -> None:
            state.last_push_at = time.time()

        services.state.update(_stamp)
        console.print(f"[green]✓[/] {len(report.pushed)} file(s) pushed.")
        for p in report.conflicts:
            console.print(f"  [yellow]merged[/]  {p} (remote changes merged with conflict markers)")
        for p in report.skipped:
            console.print(f"  [dim]skipped[/]  {p} (missing locally)")
        if report.cancelled:
            console.print("[yellow]Push cancelled; remaining files stay unpushed.[/]")
