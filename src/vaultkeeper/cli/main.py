"""vaultkeeper CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer

from vaultkeeper.cli.index import index_cmd, scan_cmd, search_cmd
from vaultkeeper.cli.init import init_cmd
from vaultkeeper.cli.status import status_cmd
from vaultkeeper.cli.sync import pull_cmd, push_cmd
from vaultkeeper.logs import setup_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("vaultkeeper")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"vaultkeeper {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="vaultkeeper",
    help=(
        "vaultkeeper — offline-first Markdown vault sync and semantic search.\n\n"
        "  vaultkeeper pull / push   Synchronise with the remote repository.\n"
        "  vaultkeeper index         Embed changed notes for search."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """vaultkeeper — offline-first Markdown vault sync and semantic search."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING)


app.command("init")(init_cmd)
app.command("status")(status_cmd)
app.command("scan")(scan_cmd)
app.command("pull")(pull_cmd)
app.command("push")(push_cmd)
app.command("index")(index_cmd)
app.command("search")(search_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed vaultkeeper version."""
    typer.echo(f"vaultkeeper {_installed_version()}")


if __name__ == "__main__":
    app()
