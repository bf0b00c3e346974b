from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from pointscope.scheduling import FrameScheduler, QueuedDebouncer


class _FakeThreadTimer:
    created: list["_FakeThreadTimer"] = []

    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.daemon = False
        self.started = False
        self.cancelled = False
        _FakeThreadTimer.created.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True


class _FakeLoopHandle:
    def __init__(self, callback):
        self._callback = callback
        self.cancelled = False

    def fire(self) -> None:
        self._callback()

    def cancel(self) -> None:
        self.cancelled = True


class _FakeAsyncLoop:
    def __init__(self) -> None:
        self.handles: list[_FakeLoopHandle] = []

    def call_later(self, _delay: float, callback):
        handle = _FakeLoopHandle(callback)
        self.handles.append(handle)
        return handle


def test_debouncer_logs_and_keeps_processing_after_callback_error_threading(caplog) -> None:
    state = {"n": 0}

    def _callback(_payload):
        state["n"] += 1
        if state["n"] == 1:
            raise RuntimeError("boom")

    _FakeThreadTimer.created.clear()

    with patch("pointscope.scheduling.threading.Timer", _FakeThreadTimer):
        debouncer = QueuedDebouncer(_callback, execute_every_ms=1, drop_overflow=False)
        with caplog.at_level(logging.ERROR, logger="pointscope.scheduling"):
            debouncer("first")
            debouncer("second")
            assert len(_FakeThreadTimer.created) == 1
            assert _FakeThreadTimer.created[0].daemon is True

            _FakeThreadTimer.created[0].callback()
            assert len(_FakeThreadTimer.created) == 2
            _FakeThreadTimer.created[1].callback()

    assert state["n"] == 2
    assert "QueuedDebouncer callback failed" in caplog.text


def test_debouncer_logs_and_keeps_processing_after_callback_error_asyncio(caplog) -> None:
    state = {"n": 0}

    def _callback(_payload):
        state["n"] += 1
        if state["n"] == 1:
            raise RuntimeError("boom")

    fake_loop = _FakeAsyncLoop()

    with patch("pointscope.scheduling.asyncio.get_running_loop", return_value=fake_loop):
        debouncer = QueuedDebouncer(_callback, execute_every_ms=1, drop_overflow=False)
        with caplog.at_level(logging.ERROR, logger="pointscope.scheduling"):
            debouncer("first")
            debouncer("second")
            assert len(fake_loop.handles) == 1

            fake_loop.handles[0].fire()
            assert len(fake_loop.handles) == 2
            fake_loop.handles[1].fire()

    assert state["n"] == 2
    assert "QueuedDebouncer callback failed" in caplog.text


def test_debouncer_drop_overflow_runs_only_latest_call() -> None:
    seen: list = []
    fake_loop = _FakeAsyncLoop()
    with patch("pointscope.scheduling.asyncio.get_running_loop", return_value=fake_loop):
        debouncer = QueuedDebouncer(seen.append, execute_every_ms=10)
        debouncer(1)
        debouncer(2)
        debouncer(3)
        fake_loop.handles[0].fire()
    assert seen == [3]
    assert len(fake_loop.handles) == 1


def test_debouncer_cancel_drops_pending_calls() -> None:
    seen: list = []
    fake_loop = _FakeAsyncLoop()
    with patch("pointscope.scheduling.asyncio.get_running_loop", return_value=fake_loop):
        debouncer = QueuedDebouncer(seen.append, execute_every_ms=10)
        debouncer("x")
        debouncer.cancel()
        fake_loop.handles[0].fire()
    assert seen == []
    assert fake_loop.handles[0].cancelled


def test_frame_scheduler_continues_after_callback_error(caplog) -> None:
    calls = {"n": 0}

    def _tick():
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("frame failed")

    fake_loop = _FakeAsyncLoop()
    with patch("pointscope.scheduling.asyncio.get_running_loop", return_value=fake_loop):
        scheduler = FrameScheduler(_tick, interval_ms=100)
        scheduler.start()
        scheduler.start()  # idempotent
        assert len(fake_loop.handles) == 1
        with caplog.at_level(logging.ERROR, logger="pointscope.scheduling"):
            fake_loop.handles[0].fire()
            fake_loop.handles[1].fire()

    assert calls["n"] == 2
    assert scheduler.running
    assert "FrameScheduler callback failed" in caplog.text


def test_frame_scheduler_stop_cancels_pending_tick() -> None:
    calls: list = []
    _FakeThreadTimer.created.clear()
    with patch("pointscope.scheduling.threading.Timer", _FakeThreadTimer):
        scheduler = FrameScheduler(lambda: calls.append(1), interval_ms=50)
        scheduler.start()
        timer = _FakeThreadTimer.created[0]
        assert timer.delay == pytest.approx(0.05)
        scheduler.stop()
        timer.callback()  # a tick that was already in flight

    assert timer.cancelled
    assert calls == []
    assert not scheduler.running


@pytest.mark.parametrize("factory", [
    lambda: QueuedDebouncer(lambda: None, execute_every_ms=0),
    lambda: FrameScheduler(lambda: None, interval_ms=0),
])
def test_non_positive_intervals_raise(factory) -> None:
    with pytest.raises(ValueError):
        factory()
