"""Logging setup for the command-line entry point.

Library modules only create ``logging.getLogger(__name__)`` loggers; handlers
are installed here, once, by the CLI.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers that are noisy at INFO.
_QUIET = ("LiteLLM", "litellm", "httpx", "httpcore", "urllib3")


def setup_logging(level: int | str = logging.WARNING, console: Console | None = None) -> None:
    """Route all log records to a RichHandler on stderr at *level*."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[handler],
        force=True,
    )
    for name in _QUIET:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
