"""Pydantic-based configuration helpers for the event debouncer."""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from functools import lru_cache
from typing import Any, Iterable, List

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import ConfigurationError


class DebounceInterval(BaseModel):
    """Minimum and optional maximum spacing between executions."""

    model_config = ConfigDict(frozen=True)

    begin: timedelta
    end: timedelta | None = None

    @field_validator("begin", "end")
    @classmethod
    def _ensure_not_negative(cls, value: timedelta | None) -> timedelta | None:
        if value is not None and value < timedelta(0):
            raise ValueError("Debounce intervals cannot be negative")
        return value

    @model_validator(mode="after")
    def _ensure_ordered(self) -> "DebounceInterval":
        if self.end is not None and self.begin > self.end:
            raise ValueError("Interval begin must not be later than its end")
        return self

    @property
    def begin_seconds(self) -> float:
        return self.begin.total_seconds()

    @property
    def end_seconds(self) -> float | None:
        return None if self.end is None else self.end.total_seconds()


def _coerce_interval(value: Any) -> Any:
    """Normalise the accepted interval shapes into model input."""

    if value is None or isinstance(value, (DebounceInterval, dict)):
        return value
    if isinstance(value, (tuple, list)):
        if len(value) != 2:
            raise ValueError("An interval range needs exactly a begin and an end")
        begin, end = value
        return {"begin": begin, "end": end}
    # A single duration is an open-ended range.
    return {"begin": value}


class DebounceSettings(BaseModel):
    """Immutable timing policy of a single debouncer.

    ``interval`` of ``None`` disables debouncing entirely.
    """

    model_config = ConfigDict(frozen=True)

    interval: DebounceInterval | None = None
    leading: bool = False
    idle_time: timedelta | None = None

    @field_validator("interval", mode="before")
    @classmethod
    def _normalise_interval(cls, value: Any) -> Any:
        return _coerce_interval(value)

    @field_validator("idle_time")
    @classmethod
    def _ensure_idle_not_negative(cls, value: timedelta | None) -> timedelta | None:
        if value is not None and value < timedelta(0):
            raise ValueError("Idle time cannot be negative")
        return value

    @property
    def passthrough(self) -> bool:
        return self.interval is None


def _format_errors(exc: ValidationError) -> str:
    parts: List[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "settings"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def build_settings(
    interval: Any = None,
    *,
    leading: bool = False,
    idle_time: Any = None,
) -> DebounceSettings:
    """Validate a timing policy, raising :class:`ConfigurationError` on failure."""

    try:
        return DebounceSettings(interval=interval, leading=leading, idle_time=idle_time)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid debounce settings: {_format_errors(exc)}") from exc


class RuntimeSettings(BaseModel):
    """Process-wide settings read from environment variables."""

    log_level: str = Field("INFO", alias="DEBOUNCER_LOG_LEVEL")
    callback_workers: int = Field(4, alias="DEBOUNCER_CALLBACK_WORKERS")

    @field_validator("log_level")
    @classmethod
    def _ensure_known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level '{value}'")
        return level

    @field_validator("callback_workers")
    @classmethod
    def _ensure_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Callback workers must be greater than zero")
        return value


def _format_invalid(fields: Iterable[str]) -> str:
    """Return a comma-separated list of offending env vars without repeats."""

    unique: List[str] = []
    for field in fields:
        if field not in unique:
            unique.append(field)
    return ", ".join(unique)


@lru_cache()
def get_settings() -> RuntimeSettings:
    """Fetch and cache runtime settings from environment variables."""

    try:
        return RuntimeSettings.model_validate(os.environ)
    except ValidationError as exc:
        invalid = [str(error["loc"][0]) for error in exc.errors()]
        message = f"Invalid environment variables: {_format_invalid(invalid)}"
        raise ConfigurationError(message) from exc
