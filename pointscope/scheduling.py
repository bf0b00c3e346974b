"""Timer helpers for frame scheduling and queued debouncing.

Both helpers prefer the running asyncio loop (the Jupyter kernel's loop) via
``loop.call_later`` so callbacks run on the same thread as widget events.
Outside a running loop they fall back to a daemon ``threading.Timer``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Optional, Tuple

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


def has_running_loop() -> bool:
    """Return True when called from inside a running asyncio loop."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def _call_later(delay_s: float, callback: Callable[[], None]) -> Any:
    """Schedule ``callback`` after ``delay_s`` and return a cancellable handle."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay_s, callback)


@dataclass
class _QueuedCall:
    args: Tuple[Any, ...]
    kwargs: dict[str, Any]


class QueuedDebouncer:
    """Queue callback invocations and execute at a fixed cadence.

    Parameters
    ----------
    callback:
        Callable to execute from queued events.
    execute_every_ms:
        Execution cadence in milliseconds.
    drop_overflow:
        If ``True``, each tick keeps only the last queued event before executing.
    """

    def __init__(
        self,
        callback: Callable[..., Any],
        *,
        execute_every_ms: int,
        drop_overflow: bool = True,
    ) -> None:
        if execute_every_ms <= 0:
            raise ValueError("execute_every_ms must be > 0")
        self._callback = callback
        self._execute_every_s = execute_every_ms / 1000.0
        self._drop_overflow = bool(drop_overflow)

        self._queue: Deque[_QueuedCall] = deque()
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            self._queue.append(_QueuedCall(args=args, kwargs=dict(kwargs)))
            if self._timer is None:
                self._timer = _call_later(self._execute_every_s, self._on_tick)

    def cancel(self) -> None:
        """Drop queued calls and the pending tick."""
        with self._lock:
            self._queue.clear()
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _on_tick(self) -> None:
        call: Optional[_QueuedCall] = None

        with self._lock:
            self._timer = None
            if not self._queue:
                return

            if self._drop_overflow and len(self._queue) > 1:
                last = self._queue[-1]
                self._queue.clear()
                self._queue.append(last)

            call = self._queue.popleft()
            if self._queue:
                self._timer = _call_later(self._execute_every_s, self._on_tick)

        try:
            self._callback(*call.args, **call.kwargs)
        except Exception:
            logger.exception("QueuedDebouncer callback failed")


class FrameScheduler:
    """Invoke ``callback`` every ``interval_ms`` until stopped.

    Each tick reschedules itself before running the callback, so a failing
    frame is logged and the schedule continues.
    """

    def __init__(self, callback: Callable[[], Any], *, interval_ms: int) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self._callback = callback
        self._interval_s = interval_ms / 1000.0
        self._lock = threading.Lock()
        self._handle: Optional[Any] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._handle = _call_later(self._interval_s, self._on_tick)

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None

    def _on_tick(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._handle = _call_later(self._interval_s, self._on_tick)
        try:
            self._callback()
        except Exception:
            logger.exception("FrameScheduler callback failed")
