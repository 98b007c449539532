"""Debouncing of a repeatedly requested unit of work.

A :class:`Debouncer` filters a stream of calls and decides when the most
recently supplied work actually runs.

Terminology:

- *calls* are invocations of :meth:`Debouncer.call`, the events that need
  to be debounced.
- *executions* are the actual runs of the supplied work. They usually occur
  far less often than calls.

Executions for a 5 second interval, one character per second (``|`` marks
the start of a period)::

    calls    : 'X.X...X...X..XX.X.X......XXXXXXXXXXX....X.....'
    trailing : '|....X|....X |....X      |....X|....X   |....X'
    leading  : 'X.....X......X....X......X....X....X....X.....'

An idle time keeps a trailing period open until calls pause for at least
that long; the end of the interval range caps how long that can last.
Without an idle time the end of the range has no effect.
"""

from __future__ import annotations

import math
import threading
from datetime import timedelta
from typing import Any, Callable

import structlog

from .config import DebounceInterval, DebounceSettings, build_settings
from .errors import NoWorkProvidedError
from .scheduling import Scheduler, ThreadingScheduler, TimerHandle

Work = Callable[[], Any]

# Extra rewind applied when a leading edge debouncer starts a fresh period.
_REWIND_SECONDS = 1.0
# Tolerance when comparing the gap between calls with the idle time.
_GAP_TOLERANCE = 1e-6


class Debouncer:
    """Leading or trailing edge debouncer for a single unit of work.

    All state, including the work reference, is guarded by one lock which is
    also held while the work runs, so at most one execution is in flight per
    instance. Deferred executions are scheduled on *scheduler*, which also
    provides the clock.
    """

    def __init__(
        self,
        interval: Any = None,
        leading: bool = False,
        idle_time: timedelta | float | None = None,
        *,
        scheduler: Scheduler | None = None,
        name: str | None = None,
    ) -> None:
        self._settings = build_settings(interval, leading=leading, idle_time=idle_time)
        self._scheduler = scheduler or ThreadingScheduler()
        self._name = name
        self._lock = threading.RLock()
        self._work: Work | None = None
        self._timer: TimerHandle | None = None
        self._leading_timestamp: float | None = None
        self._last_call: float | None = None

        policy = self._settings.interval
        self._begin = policy.begin_seconds if policy else 0.0
        self._end = policy.end_seconds if policy else None
        idle = self._settings.idle_time
        self._idle_time = idle.total_seconds() if idle is not None else None

        if policy is not None:
            self.reset()

    @classmethod
    def from_settings(
        cls,
        settings: DebounceSettings,
        *,
        scheduler: Scheduler | None = None,
        name: str | None = None,
    ) -> "Debouncer":
        return cls(
            settings.interval,
            leading=settings.leading,
            idle_time=settings.idle_time,
            scheduler=scheduler,
            name=name,
        )

    def __repr__(self) -> str:
        return (
            f"<Debouncer name={self._name!r} interval={self.interval!r} "
            f"leading={self.leading} idle_time={self.idle_time!r}>"
        )

    @property
    def settings(self) -> DebounceSettings:
        return self._settings

    @property
    def interval(self) -> DebounceInterval | None:
        """The accepted debounce period, or None when debouncing is disabled."""

        return self._settings.interval

    @property
    def idle_time(self) -> timedelta | None:
        """The minimum gap between calls that ends a debounce period."""

        return self._settings.idle_time

    @property
    def leading(self) -> bool:
        """True when this debouncer executes on the leading edge."""

        return self._settings.leading

    @property
    def pending(self) -> bool:
        """True while a trailing edge execution is scheduled."""

        with self._lock:
            return self._timer is not None and self._timer.active

    def call(self, work: Work | None = None) -> Any:
        """Debounce a call to *work*.

        When *work* is omitted the previously supplied work is debounced
        again. Only passthrough debouncers return the result of the work;
        every other policy returns None.

        Raises:
            NoWorkProvidedError: if no work was ever supplied.
        """

        with self._lock:
            if work is not None:
                self._work = work
            if self._work is None:
                raise NoWorkProvidedError()

            if self._settings.interval is None:
                return self._execute()

            now = self._scheduler.now()
            if self.leading:
                self._leading_edge(now)
            else:
                self._trailing_edge(now)
            self._last_call = now
        return None

    def call_now(self) -> Any:
        """Execute the latest work right away, ignoring the debounce policy.

        Returns the result of the work.
        """

        with self._lock:
            if self._work is None:
                raise NoWorkProvidedError()
            return self._execute()

    def reset(self) -> bool:
        """Start a new debounce period.

        A leading edge debouncer executes on its next call. A trailing edge
        debouncer drops its outstanding execution and treats its next call
        as the start of a new period.

        Returns True if a pending execution was cancelled.
        """

        with self._lock:
            cancelled = False
            if self._timer is not None:
                cancelled = self._timer.cancel()
                self._timer = None

            if self.leading and self._settings.interval is not None:
                self._leading_timestamp = self._scheduler.now() - self._begin - _REWIND_SECONDS
                self._last_call = self._leading_timestamp - (self._idle_time or 0.0)

            if cancelled:
                structlog.get_logger().debug("debounce_reset", debouncer=self._name)
            return cancelled

    def flush(self) -> bool:
        """Run an outstanding trailing edge execution immediately.

        Has no effect on leading edge debouncers, use :meth:`reset` there.
        Returns False when nothing was outstanding.
        """

        with self._lock:
            timer = self._timer
            if timer is None or not timer.cancel():
                return False
            self._timer = None
            self._execute()
            return True

    def _execute(self) -> Any:
        structlog.get_logger().debug("debounce_executed", debouncer=self._name)
        return self._work()

    def _too_soon(self, now: float) -> bool:
        return now < self._leading_timestamp + self._begin

    def _max_interval_reached(self, now: float) -> bool:
        # Without an upper bound there is nothing to reach.
        return self._end is not None and now >= self._leading_timestamp + self._end

    def _idle(self, now: float) -> bool:
        # Without an idle time the idle condition is always met.
        if self._idle_time is None or self._last_call is None:
            return True
        return now >= self._last_call + self._idle_time

    def _gap_is_idle_time(self, now: float) -> bool:
        return math.isclose(
            now - self._last_call, self._idle_time, rel_tol=0.0, abs_tol=_GAP_TOLERANCE
        )

    def _leading_edge(self, now: float) -> None:
        if self._too_soon(now):
            return
        if not (self._idle(now) or self._max_interval_reached(now)):
            return

        self._leading_timestamp = now
        self._execute()

    def _trailing_edge(self, now: float) -> None:
        timer = self._timer
        # A timer that is no longer active has fired but its callback is
        # still waiting for the lock; a new period starts here.
        if timer is None or not timer.active:
            self._start_timer(now)
        else:
            self._extend_timer(timer, now)

    def _start_timer(self, now: float) -> None:
        delay = self._begin
        # Calls still closer together than idle_time keep the new period
        # open for at least idle_time; a settled stream waits only begin.
        if (
            self._idle_time is not None
            and self._last_call is not None
            and now - self._last_call < self._idle_time
        ):
            delay = max(delay, self._idle_time)

        self._leading_timestamp = now
        timer: TimerHandle | None = None

        def fire() -> None:
            with self._lock:
                if self._timer is timer:
                    self._timer = None
                self._execute()

        timer = self._scheduler.schedule(delay, fire)
        self._timer = timer
        structlog.get_logger().debug(
            "debounce_timer_started", debouncer=self._name, delay=delay
        )

    def _extend_timer(self, timer: TimerHandle, now: float) -> None:
        execution_time = self._leading_timestamp + self._begin

        if self._idle_time is not None and not self._gap_is_idle_time(now):
            execution_time = max(execution_time, now + self._idle_time)
        if self._end is not None:
            execution_time = min(execution_time, self._leading_timestamp + self._end)

        if execution_time <= now:
            # A timer that already started firing runs the latest work itself.
            if timer.cancel():
                self._timer = None
                self._execute()
        elif execution_time > timer.execution_time:
            timer.reschedule(execution_time)
            structlog.get_logger().debug(
                "debounce_timer_rescheduled",
                debouncer=self._name,
                execution_time=execution_time,
            )
