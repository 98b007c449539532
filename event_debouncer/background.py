"""Thread pool used to run deferred debounce executions."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextvars import Context, copy_context
from typing import Any, Callable

import structlog

from .config import get_settings

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def get_executor() -> ThreadPoolExecutor:
    """Return the shared pool, creating it from the runtime settings."""

    global _executor

    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=get_settings().callback_workers,
                thread_name_prefix="debouncer",
            )
        return _executor


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        structlog.get_logger().error(
            "debounced_work_failed",
            error=repr(exc),
            exc_info=(type(exc), exc, exc.__traceback__),
        )


def run_async(
    func: Callable[..., Any],
    /,
    *args: Any,
    context: Context | None = None,
    **kwargs: Any,
) -> Future:
    """Submit *func* to the shared thread pool and return a Future.

    The call runs inside *context*, or a copy of the caller's context, so
    structlog contextvars bound by the caller remain visible to the worker.
    Failures are logged and left on the returned Future.
    """

    if context is None:
        context = copy_context()

    def runner() -> Any:
        return context.run(func, *args, **kwargs)

    future = get_executor().submit(runner)
    future.add_done_callback(_log_failure)
    return future


def shutdown(wait: bool = True) -> None:
    """Stop the shared pool; a new one is created on the next submission."""

    global _executor

    with _executor_lock:
        executor, _executor = _executor, None
    if executor is not None:
        executor.shutdown(wait=wait)
