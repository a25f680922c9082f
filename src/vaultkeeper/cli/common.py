"""Shared option types and service construction for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Callable, TypeVar

import typer
from rich.console import Console

from vaultkeeper.cli.errors import err_config, err_no_db, err_remote_not_configured
from vaultkeeper.config import ConfigError, VaultkeeperConfig, load_config
from vaultkeeper.services import Services, build_services
from vaultkeeper.tasks import CancelToken

console = Console()

T = TypeVar("T")

VaultOption = Annotated[
    Path | None,
    typer.Option("--vault", help="Vault directory (default: $VAULTKEEPER_VAULT_ROOT or CWD)."),
]


def load_cli_config(vault: Path | None) -> VaultkeeperConfig:
    """Load config, turning ConfigError into an actionable message + exit 1."""
    try:
        return load_config(vault.resolve() if vault else None)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)


def open_services(vault: Path | None, require_db: bool = True) -> Services:
    cfg = load_cli_config(vault)
    if require_db and not cfg.vault.db_path.exists():
        console.print(err_no_db(str(cfg.vault.db_path)))
        raise typer.Exit(1)
    return build_services(cfg)


def require_remote(cfg: VaultkeeperConfig) -> None:
    if not cfg.remote.configured:
        console.print(err_remote_not_configured())
        raise typer.Exit(1)


def run_cancellable(
    services: Services,
    message: str,
    fn: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Run *fn* on the task runner behind a spinner; Ctrl-C cancels at the next file boundary."""
    token = CancelToken()
    future = services.runner.submit(fn, *args, cancel=token, **kwargs)
    try:
        with console.status(message):
            return future.result()
    except KeyboardInterrupt:
        token.cancel()
        console.print("[yellow]Cancelling after the current file…[/]")
        return future.result()
