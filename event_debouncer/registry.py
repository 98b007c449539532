"""Keyed debouncers for call sites that cannot hold on to an instance.

Each key owns one :class:`Debouncer`, created on first use with the policy
given at that time and reused for every later call with the same key. When
no key is supplied, the source location of the work callable is used, so
repeated calls from the same line share a debouncer.

Guard helpers:

- :meth:`DebouncerRegistry.debounce_for` waits until calls pause for the
  given time before running the latest work.
- :meth:`DebouncerRegistry.throttle_for` runs the latest work once per
  period, counted from the first call of the period.
- :meth:`DebouncerRegistry.only_every` runs the first call right away and
  ignores the rest of the period.
"""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import Any, Dict, Hashable

import structlog

from .config import DebounceInterval, build_settings
from .debounce import Debouncer, Work
from .scheduling import Scheduler

_NAMED_INTERVALS = {
    "second": timedelta(seconds=1),
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
}


def work_key(work: Work) -> Hashable:
    """Return the source location of *work* as a registry key."""

    code = getattr(work, "__code__", None)
    if code is None:
        raise TypeError(
            f"Cannot derive a debounce key for {work!r}; pass key= explicitly"
        )
    return (code.co_filename, code.co_firstlineno)


def _range_begin(value: Any) -> Any:
    if isinstance(value, DebounceInterval):
        return value.begin
    if isinstance(value, (tuple, list)) and value:
        return value[0]
    return value


class DebouncerRegistry:
    """Thread-safe mapping of keys to debouncers."""

    def __init__(self, *, scheduler: Scheduler | None = None) -> None:
        self._scheduler = scheduler
        self._lock = threading.Lock()
        self._debouncers: Dict[Hashable, Debouncer] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._debouncers)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._debouncers

    def get(self, key: Hashable) -> Debouncer | None:
        with self._lock:
            return self._debouncers.get(key)

    def _get_or_create(
        self,
        key: Hashable,
        interval: Any,
        leading: bool,
        idle_time: Any,
    ) -> Debouncer:
        with self._lock:
            debouncer = self._debouncers.get(key)
            if debouncer is None:
                settings = build_settings(interval, leading=leading, idle_time=idle_time)
                debouncer = Debouncer.from_settings(
                    settings, scheduler=self._scheduler, name=str(key)
                )
                self._debouncers[key] = debouncer
                structlog.get_logger().debug("debouncer_registered", key=str(key))
            return debouncer

    def debounce(
        self,
        work: Work,
        *,
        interval: Any,
        leading: bool = False,
        idle_time: Any = None,
        key: Hashable | None = None,
    ) -> Any:
        """Debounce *work* with the debouncer registered under *key*."""

        if key is None:
            key = work_key(work)
        debouncer = self._get_or_create(key, interval, leading, idle_time)
        return debouncer.call(work)

    def debounce_for(
        self, debounce_time: Any, work: Work, *, key: Hashable | None = None
    ) -> Any:
        """Run *work* once calls have paused for the start of *debounce_time*.

        When *debounce_time* is a range, its end bounds how long continuous
        calls may hold the execution back.
        """

        return self.debounce(
            work,
            interval=debounce_time,
            idle_time=_range_begin(debounce_time),
            key=key,
        )

    def throttle_for(
        self, duration: Any, work: Work, *, key: Hashable | None = None
    ) -> Any:
        return self.debounce(work, interval=duration, key=key)

    def only_every(
        self, interval: Any, work: Work, *, key: Hashable | None = None
    ) -> Any:
        """Run *work* at most once per *interval*, on the leading edge.

        *interval* may also be one of ``"second"``, ``"minute"``, ``"hour"``
        or ``"day"``.
        """

        if isinstance(interval, str) and interval in _NAMED_INTERVALS:
            interval = _NAMED_INTERVALS[interval]
        return self.debounce(work, interval=interval, leading=True, key=key)

    def reset(self, key: Hashable) -> bool:
        debouncer = self.get(key)
        return debouncer.reset() if debouncer is not None else False

    def flush(self, key: Hashable) -> bool:
        debouncer = self.get(key)
        return debouncer.flush() if debouncer is not None else False

    def discard(self, key: Hashable) -> bool:
        """Drop the debouncer for *key*, cancelling its pending execution."""

        with self._lock:
            debouncer = self._debouncers.pop(key, None)
        if debouncer is None:
            return False
        debouncer.reset()
        return True

    def clear(self) -> None:
        with self._lock:
            debouncers = list(self._debouncers.values())
            self._debouncers.clear()
        for debouncer in debouncers:
            debouncer.reset()


_default_registry = DebouncerRegistry()


def get_default_registry() -> DebouncerRegistry:
    return _default_registry


def debounce(
    work: Work,
    *,
    interval: Any,
    leading: bool = False,
    idle_time: Any = None,
    key: Hashable | None = None,
) -> Any:
    return _default_registry.debounce(
        work, interval=interval, leading=leading, idle_time=idle_time, key=key
    )


def debounce_for(debounce_time: Any, work: Work, *, key: Hashable | None = None) -> Any:
    return _default_registry.debounce_for(debounce_time, work, key=key)


def throttle_for(duration: Any, work: Work, *, key: Hashable | None = None) -> Any:
    return _default_registry.throttle_for(duration, work, key=key)


def only_every(interval: Any, work: Work, *, key: Hashable | None = None) -> Any:
    return _default_registry.only_every(interval, work, key=key)


def reset(key: Hashable) -> bool:
    return _default_registry.reset(key)


def flush(key: Hashable) -> bool:
    return _default_registry.flush(key)


def discard(key: Hashable) -> bool:
    return _default_registry.discard(key)


def clear() -> None:
    _default_registry.clear()
