"""Clock and deferred-execution primitives used by :class:`Debouncer`.

Instants are floats of monotonic seconds; delays may be given either as a
:class:`~datetime.timedelta` or as a number of seconds.
"""

from __future__ import annotations

import itertools
import threading
import time
from contextvars import copy_context
from datetime import timedelta
from typing import Callable, List, Protocol, Union

import structlog

from .background import get_executor, run_async

Delay = Union[timedelta, float, int]
Callback = Callable[[], object]

_PENDING = "pending"
_FIRED = "fired"
_CANCELLED = "cancelled"


def to_seconds(value: Delay) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class TimerHandle(Protocol):
    """A cancellable, reschedulable one-shot deferred callback."""

    @property
    def active(self) -> bool: ...

    @property
    def execution_time(self) -> float: ...

    def cancel(self) -> bool: ...

    def reschedule(self, when: float) -> None: ...


class Scheduler(Protocol):
    """Clock plus one-shot timer factory."""

    def now(self) -> float: ...

    def schedule(self, delay: Delay, callback: Callback) -> TimerHandle: ...


class ThreadTimer:
    """One-shot timer backed by a waiter thread.

    The waiter sleeps on a condition until the execution time passes, then
    hands the callback to the background pool. ``cancel`` returns False once
    the timer has started firing.
    """

    def __init__(
        self,
        clock: Callable[[], float],
        execution_time: float,
        callback: Callback,
    ) -> None:
        self._clock = clock
        self._execution_time = execution_time
        self._callback = callback
        self._context = copy_context()
        self._condition = threading.Condition()
        self._state = _PENDING
        self._thread = threading.Thread(
            target=self._wait, name="debouncer-timer", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    @property
    def active(self) -> bool:
        with self._condition:
            return self._state == _PENDING

    @property
    def execution_time(self) -> float:
        with self._condition:
            return self._execution_time

    def cancel(self) -> bool:
        with self._condition:
            if self._state != _PENDING:
                return False
            self._state = _CANCELLED
            self._condition.notify_all()
            return True

    def reschedule(self, when: float) -> None:
        with self._condition:
            if self._state != _PENDING:
                return
            self._execution_time = when
            self._condition.notify_all()

    def _wait(self) -> None:
        with self._condition:
            while self._state == _PENDING:
                remaining = self._execution_time - self._clock()
                if remaining <= 0:
                    self._state = _FIRED
                    break
                self._condition.wait(remaining)
            if self._state != _FIRED:
                return

        try:
            run_async(self._callback, context=self._context)
        except Exception:
            structlog.get_logger().exception(
                "debounced_work_failed", execution_time=self._execution_time
            )


class ThreadingScheduler:
    """Real-time scheduler; callbacks run on the shared background pool."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        # Invalid pool settings fail here rather than on a timer thread.
        get_executor()

    def now(self) -> float:
        return self._clock()

    def schedule(self, delay: Delay, callback: Callback) -> ThreadTimer:
        timer = ThreadTimer(self._clock, self._clock() + to_seconds(delay), callback)
        timer.start()
        return timer


class ManualTimer:
    def __init__(
        self,
        scheduler: "ManualScheduler",
        execution_time: float,
        callback: Callback,
        sequence: int,
    ) -> None:
        self._scheduler = scheduler
        self._execution_time = execution_time
        self._callback = callback
        self._sequence = sequence
        self._state = _PENDING

    @property
    def active(self) -> bool:
        return self._state == _PENDING

    @property
    def execution_time(self) -> float:
        return self._execution_time

    @property
    def sort_key(self) -> tuple[float, int]:
        return (self._execution_time, self._sequence)

    def cancel(self) -> bool:
        with self._scheduler.lock:
            if self._state != _PENDING:
                return False
            self._state = _CANCELLED
            return True

    def reschedule(self, when: float) -> None:
        with self._scheduler.lock:
            if self._state == _PENDING:
                self._execution_time = when

    def claim(self) -> bool:
        with self._scheduler.lock:
            if self._state != _PENDING:
                return False
            self._state = _FIRED
            return True

    def fire(self) -> None:
        self._callback()


class ManualScheduler:
    """Scheduler driven by a virtual clock.

    Time only moves when :meth:`advance` is called; due timers then fire
    synchronously on the calling thread, in execution-time order, with the
    clock set to each timer's execution time. Exceptions raised by a
    callback propagate out of :meth:`advance`.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._timers: List[ManualTimer] = []
        self._sequence = itertools.count()
        self.lock = threading.RLock()

    def now(self) -> float:
        return self._now

    def schedule(self, delay: Delay, callback: Callback) -> ManualTimer:
        with self.lock:
            timer = ManualTimer(
                self, self._now + to_seconds(delay), callback, next(self._sequence)
            )
            self._timers.append(timer)
            return timer

    @property
    def pending(self) -> int:
        with self.lock:
            return sum(1 for timer in self._timers if timer.active)

    def _next_due(self, deadline: float) -> ManualTimer | None:
        with self.lock:
            self._timers = [timer for timer in self._timers if timer.active]
            due = [timer for timer in self._timers if timer.execution_time <= deadline]
            if not due:
                return None
            return min(due, key=lambda timer: timer.sort_key)

    def advance(self, delay: Delay = 0) -> int:
        """Move the clock forward by *delay*, firing due timers on the way.

        Returns the number of timers fired.
        """

        deadline = self._now + to_seconds(delay)
        fired = 0
        while True:
            timer = self._next_due(deadline)
            if timer is None:
                break
            self._now = max(self._now, timer.execution_time)
            if not timer.claim():
                continue
            fired += 1
            structlog.get_logger().debug(
                "manual_timer_fired", execution_time=timer.execution_time
            )
            timer.fire()

        self._now = max(self._now, deadline)
        return fired
