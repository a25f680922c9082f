"""Background execution primitives: cancel tokens and a worker pool.

Each major operation (discovery sweep, push batch, indexing cycle, search
query) is submitted as an independent task. Batch operations poll their
CancelToken between files, never in the middle of one.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """Cooperative cancellation flag shared between a caller and a task."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to *timeout* seconds; return True early if cancelled."""
        return self._event.wait(timeout)


class TaskRunner:
    """Thread pool that runs engine operations off the caller's thread.

    Args:
        max_workers: Pool size. Operations touching the same Repository are
            serialised by its lock, so a small pool is enough.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="vaultkeeper")

    def submit(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Future[T]:
        future = self._pool.submit(fn, *args, **kwargs)
        future.add_done_callback(_log_failure)
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=not wait)

    def __enter__(self) -> TaskRunner:
        return self

    def __exit__(self, *args: object) -> None:
        self.shutdown()


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Background task failed: %s", exc, exc_info=exc)
