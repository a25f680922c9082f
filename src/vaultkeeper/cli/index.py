"""vaultkeeper scan / index / search — local discovery and semantic search."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from vaultkeeper.cli.common import VaultOption, console, open_services, run_cancellable
from vaultkeeper.cli.errors import err_engine_not_ready, warn_no_results
from vaultkeeper.errors import EngineNotReady
from vaultkeeper.state import UserState


def scan_cmd(vault: VaultOption = None) -> None:
    """Rescan the vault on disk and update the file index."""
    services = open_services(vault)
    with services:
        changed = services.discovery.reindex_all(0.0)
        console.print(
            f"[green]✓[/] {services.files.count()} entries indexed, "
            f"{services.files.count_dirty()} unpushed."
        )
        if changed:
            console.print(f"  {len(changed)} entries scanned.")


def index_cmd(
    vault: VaultOption = None,
    full: Annotated[
        bool,
        typer.Option("--full", help="Drop all embeddings and re-embed every note."),
    ] = False,
) -> None:
    """Embed notes changed since the last index run."""
    services = open_services(vault)
    with services:
        full = full or services.state.load().full_reindex_requested
        if full:
            # A full run clears every chunk up front; it stays pending until one completes.
            services.state.update(_request_full_reindex)
        result = run_cancellable(services, "Indexing…", services.indexer.run, full=full)
        if not result.ok:
            if isinstance(result.error, EngineNotReady):
                console.print(err_engine_not_ready(services.config.embedding.model, str(result.error)))
            else:
                console.print(f"[red]Error:[/] Indexing failed: {result.error}")
            raise typer.Exit(1)

        report = result.value
        last = services.indexer.last_index_time()

        def _record(state: UserState) -> None:
            state.last_index_time = last
            if not report.cancelled:
                state.full_reindex_requested = False

        services.state.update(_record)
        console.print(
            f"[green]✓[/] {len(report.indexed)} note(s) embedded "
            f"({report.chunks_written} chunks), {report.orphans_removed} orphan chunk(s) pruned."
        )
        for p in report.failed:
            console.print(f"  [red]failed[/]  {p}")
        if report.cancelled:
            console.print("[yellow]Indexing cancelled; the next run resumes from the last horizon.[/]")


def _request_full_reindex(state: UserState) -> None:
    state.full_reindex_requested = True


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language query.")],
    vault: VaultOption = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Number of results (default: search.limit)."),
    ] = None,
) -> None:
    """Find the note chunks most similar to QUERY."""
    services = open_services(vault)
    with services:
        n = limit if limit is not None else services.config.search.limit
        hits = services.engine.search_scored(query, n)
        if not hits and services.engine.init_error is not None:
            console.print(
                err_engine_not_ready(services.config.embedding.model, str(services.engine.init_error))
            )
            raise typer.Exit(1)
        if not hits:
            console.print(warn_no_results(query))
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("Score", justify="right")
        table.add_column("Note")
        table.add_column("Excerpt")
        for chunk, score in hits:
            excerpt = " ".join(chunk.content.split())[:120]
            table.add_row(f"{score:.3f}", chunk.file_id, excerpt)
        console.print(table)
