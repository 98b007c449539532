"""Exception types raised by the debouncer."""

from __future__ import annotations


class DebounceError(Exception):
    """Base class for debouncer errors."""


class ConfigurationError(DebounceError, ValueError):
    """Raised when a debouncer is constructed with an invalid timing policy."""


class NoWorkProvidedError(DebounceError, RuntimeError):
    """Raised when a debouncer is called before any work was supplied."""

    def __init__(self, message: str = "No work has been provided") -> None:
        super().__init__(message)
