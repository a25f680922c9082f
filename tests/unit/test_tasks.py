"""Tests for CancelToken and TaskRunner."""

from __future__ import annotations

import logging
import threading

import pytest

from vaultkeeper.tasks import CancelToken, TaskRunner


def test_cancel_token_flags_and_wakes_waiters():
    token = CancelToken()
    assert not token.cancelled
    assert not token.wait(0)

    threading.Timer(0.05, token.cancel).start()

    assert token.wait(5)
    assert token.cancelled


def test_runner_returns_results():
    with TaskRunner() as runner:
        future = runner.submit(lambda a, b=0: a + b, 2, b=3)
        assert future.result(timeout=5) == 5


def test_runner_logs_task_failures(caplog):
    def boom():
        raise RuntimeError("task exploded")

    with caplog.at_level(logging.ERROR, logger="vaultkeeper.tasks"):
        with TaskRunner() as runner:
            future = runner.submit(boom)
            with pytest.raises(RuntimeError):
                future.result(timeout=5)

    assert "task exploded" in caplog.text


def test_task_observes_cancellation():
    token = CancelToken()
    started = threading.Event()

    def loop(cancel):
        started.set()
        steps = 0
        while not cancel.cancelled:
            steps += 1
            cancel.wait(0.01)
        return steps

    with TaskRunner() as runner:
        future = runner.submit(loop, token)
        started.wait(5)
        token.cancel()
        assert future.result(timeout=5) >= 1
