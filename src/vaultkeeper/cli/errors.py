"""vaultkeeper rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from vaultkeeper.cli.errors import err_no_db
    console.print(err_no_db(path))
    raise typer.Exit(1)
"""

from __future__ import annotations

from vaultkeeper.errors import NetworkFailure, RemoteError, Unauthorized


def err_no_db(db_path: str) -> str:
    """No vault database found."""
    return (
        f"[red]Error:[/] No vault database found at '{db_path}'.\n"
        "  Run:  vaultkeeper init"
    )


def err_config(message: str) -> str:
    """A config file is invalid or contains a forbidden key."""
    return f"[red]Error:[/] Invalid configuration.\n  {message}"


def err_remote_not_configured() -> str:
    """remote.owner / remote.repo missing."""
    return (
        "[red]Error:[/] No remote repository configured.\n"
        "  Add to vaultkeeper.yaml:\n"
        "    remote:\n"
        "      owner: <github-user>\n"
        "      repo: <vault-repo>\n"
        "  or set VAULTKEEPER_REMOTE_OWNER and VAULTKEEPER_REMOTE_REPO."
    )


def err_unauthorized(token_env: str) -> str:
    """The remote rejected the token (HTTP 401)."""
    return (
        "[red]Error:[/] The remote rejected your credentials (401).\n"
        f"  Set a valid token:  export {token_env}=ghp_..."
    )


def err_network(detail: str) -> str:
    return (
        f"[red]Error:[/] Could not reach the remote: {detail}\n"
        "  Check your connection and retry; local changes stay dirty until pushed."
    )


def err_remote_status(status: int | None, detail: str) -> str:
    code = f" ({status})" if status is not None else ""
    return (
        f"[red]Error:[/] The remote answered with an error{code}: {detail}\n"
        "  Retry later; already-synced files are not affected."
    )


def err_sync_failure(exc: Exception, token_env: str) -> str:
    """Map a sync failure to its actionable message."""
    if isinstance(exc, Unauthorized):
        return err_unauthorized(token_env)
    if isinstance(exc, NetworkFailure):
        return err_network(str(exc))
    if isinstance(exc, RemoteError):
        return err_remote_status(exc.status, str(exc))
    return f"[red]Error:[/] {exc}"


def err_engine_not_ready(model: str, detail: str) -> str:
    """Embedding provider could not be initialised."""
    return (
        f"[red]Error:[/] Embedding engine not ready for '{model}'.\n"
        f"  {detail}\n"
        "  Check the embedding.model / embedding.asset settings and the provider API key."
    )


def warn_no_results(query: str) -> str:
    return (
        f"[yellow]No matches for[/] '{query}'.\n"
        "  Run:  vaultkeeper index  to embed new or changed notes."
    )
