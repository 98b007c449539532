"""Event debouncer package initialisation."""

from .background import run_async  # noqa: F401
from .config import (  # noqa: F401
    DebounceInterval,
    DebounceSettings,
    RuntimeSettings,
    build_settings,
    get_settings,
)
from .debounce import Debouncer  # noqa: F401
from .errors import ConfigurationError, DebounceError, NoWorkProvidedError  # noqa: F401
from .logging_config import configure_logging  # noqa: F401
from .registry import (  # noqa: F401
    DebouncerRegistry,
    debounce,
    debounce_for,
    get_default_registry,
    only_every,
    throttle_for,
)
from .scheduling import (  # noqa: F401
    ManualScheduler,
    Scheduler,
    ThreadingScheduler,
    TimerHandle,
)

__all__ = [
    "Debouncer",
    "DebounceInterval",
    "DebounceSettings",
    "RuntimeSettings",
    "build_settings",
    "get_settings",
    "DebounceError",
    "ConfigurationError",
    "NoWorkProvidedError",
    "DebouncerRegistry",
    "debounce",
    "debounce_for",
    "throttle_for",
    "only_every",
    "get_default_registry",
    "Scheduler",
    "TimerHandle",
    "ThreadingScheduler",
    "ManualScheduler",
    "run_async",
    "configure_logging",
]
