"""Tests for the manual and threading schedulers."""

from __future__ import annotations

import threading
import time
from datetime import timedelta

import pytest
from structlog.contextvars import bind_contextvars, clear_contextvars, get_contextvars
from structlog.testing import capture_logs

from event_debouncer import (
    ConfigurationError,
    Debouncer,
    ManualScheduler,
    ThreadingScheduler,
    background,
    config,
    scheduling,
)


def test_manual_scheduler_fires_in_execution_order() -> None:
    scheduler = ManualScheduler(start=10)
    fired: list[tuple[str, float]] = []

    scheduler.schedule(5, lambda: fired.append(("b", scheduler.now())))
    scheduler.schedule(timedelta(seconds=2), lambda: fired.append(("a", scheduler.now())))
    scheduler.schedule(20, lambda: fired.append(("c", scheduler.now())))

    assert scheduler.advance(6) == 2
    assert fired == [("a", 12.0), ("b", 15.0)]
    assert scheduler.now() == 16.0
    assert scheduler.pending == 1


def test_manual_scheduler_fires_timers_scheduled_by_callbacks() -> None:
    scheduler = ManualScheduler()
    fired: list[float] = []

    def chain() -> None:
        fired.append(scheduler.now())
        if len(fired) < 3:
            scheduler.schedule(1, chain)

    scheduler.schedule(1, chain)

    assert scheduler.advance(10) == 3
    assert fired == [1.0, 2.0, 3.0]


def test_manual_timer_cancel_and_reschedule() -> None:
    scheduler = ManualScheduler()
    fired: list[float] = []
    timer = scheduler.schedule(5, lambda: fired.append(scheduler.now()))

    timer.reschedule(8)
    assert timer.execution_time == 8

    scheduler.advance(7)
    assert fired == []
    assert timer.active is True

    scheduler.advance(1)
    assert fired == [8.0]
    assert timer.active is False
    assert timer.cancel() is False

    cancelled = scheduler.schedule(1, lambda: fired.append(-1))
    assert cancelled.cancel() is True
    assert cancelled.cancel() is False
    scheduler.advance(5)
    assert fired == [8.0]


def test_threading_timer_fires_once() -> None:
    scheduler = ThreadingScheduler()
    done = threading.Event()

    timer = scheduler.schedule(0.02, done.set)

    assert done.wait(timeout=2)
    assert timer.active is False
    assert timer.cancel() is False


def test_threading_timer_cancel_prevents_firing() -> None:
    scheduler = ThreadingScheduler()
    done = threading.Event()

    timer = scheduler.schedule(0.2, done.set)

    assert timer.cancel() is True
    assert timer.cancel() is False
    assert done.wait(timeout=0.4) is False


def test_threading_timer_reschedule_delays_firing() -> None:
    scheduler = ThreadingScheduler()
    done = threading.Event()

    timer = scheduler.schedule(0.05, done.set)
    timer.reschedule(scheduler.now() + 0.5)

    assert done.wait(timeout=0.2) is False
    assert timer.active is True
    assert done.wait(timeout=2)


def test_threading_timer_carries_structlog_context() -> None:
    clear_contextvars()
    bind_contextvars(trace_id="trace-123")
    captured: dict[str, str] = {}
    done = threading.Event()

    def callback() -> None:
        captured.update(get_contextvars())
        done.set()

    ThreadingScheduler().schedule(0, callback)
    clear_contextvars()

    assert done.wait(timeout=2)
    assert captured.get("trace_id") == "trace-123"


def test_debouncer_with_threading_scheduler_runs_latest_work() -> None:
    captured: list[int] = []
    done = threading.Event()
    debouncer = Debouncer(timedelta(milliseconds=50))

    def make_work(value: int):
        def work() -> None:
            captured.append(value)
            done.set()

        return work

    for value in (1, 2, 3):
        debouncer.call(make_work(value))

    assert done.wait(timeout=2)
    time.sleep(0.1)
    assert captured == [3]
    assert debouncer.pending is False


def test_invalid_pool_settings_fail_at_construction(monkeypatch) -> None:
    monkeypatch.setenv("DEBOUNCER_CALLBACK_WORKERS", "0")
    config.get_settings.cache_clear()
    background.shutdown()

    try:
        with pytest.raises(ConfigurationError) as err:
            Debouncer(timedelta(milliseconds=20))
        assert "DEBOUNCER_CALLBACK_WORKERS" in str(err.value)
    finally:
        config.get_settings.cache_clear()


def test_failed_handoff_to_pool_is_logged(monkeypatch) -> None:
    ran = threading.Event()

    def refuse(*args, **kwargs):
        raise RuntimeError("pool is gone")

    monkeypatch.setattr(scheduling, "run_async", refuse)

    with capture_logs() as logs:
        timer = ThreadingScheduler().schedule(0, ran.set)
        deadline = time.monotonic() + 2
        while not logs and time.monotonic() < deadline:
            time.sleep(0.01)

    assert logs and logs[0]["event"] == "debounced_work_failed"
    assert logs[0]["log_level"] == "error"
    assert timer.active is False
    assert not ran.is_set()
