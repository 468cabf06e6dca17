"""Cancellable one-shot timers.

A room stores the handle returned by ``schedule`` and drops it with
``cancel()``. Callbacks still receive the handle so the state machine can tell
a current timer from a stale one that fired after being replaced.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class TimerHandle:
    def __init__(self, name: str, delay: float, deadline: float) -> None:
        self.name = name
        self.delay = delay
        self.deadline = deadline
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not self.cancelled and not self.fired

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "fired" if self.fired else "pending"
        return f"<TimerHandle {self.name} {self.delay}s {state}>"


TimerCallback = Callable[[TimerHandle], None]


class TimerDriver(Protocol):
    def now(self) -> float: ...

    def schedule(self, name: str, delay: float, callback: TimerCallback) -> TimerHandle: ...


class BackgroundTimerDriver:
    """Runs each timer as a Socket.IO background task."""

    def __init__(self, start_background_task: Callable[..., Any], sleep: Callable[[float], Any]) -> None:
        self._start = start_background_task
        self._sleep = sleep

    @classmethod
    def for_socketio(cls, socketio) -> "BackgroundTimerDriver":
        return cls(socketio.start_background_task, socketio.sleep)

    def now(self) -> float:
        return time.time()

    def schedule(self, name: str, delay: float, callback: TimerCallback) -> TimerHandle:
        handle = TimerHandle(name, delay, self.now() + delay)
        self._start(self._run, handle, callback)
        return handle

    def _run(self, handle: TimerHandle, callback: TimerCallback) -> None:
        self._sleep(handle.delay)
        if handle.cancelled:
            return
        handle.fired = True
        try:
            callback(handle)
        except Exception:
            logger.exception("[timer-error] %s", handle.name)


class ManualTimerDriver:
    """Virtual clock; timers fire only when ``advance`` moves past them."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, TimerHandle, TimerCallback]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def schedule(self, name: str, delay: float, callback: TimerCallback) -> TimerHandle:
        handle = TimerHandle(name, delay, self._now + delay)
        heapq.heappush(self._queue, (handle.deadline, next(self._seq), handle, callback))
        return handle

    def pending(self) -> list[TimerHandle]:
        return [h for _, _, h, _ in sorted(self._queue) if h.pending]

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in deadline order."""
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            deadline, _, handle, callback = heapq.heappop(self._queue)
            self._now = max(self._now, deadline)
            if handle.cancelled:
                continue
            handle.fired = True
            callback(handle)
            fired += 1
        self._now = target
        return fired
