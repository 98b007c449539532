"""Tests for structlog configuration."""

from __future__ import annotations

import logging

import pytest
import structlog

from event_debouncer import config
from event_debouncer.logging_config import configure_logging


@pytest.fixture(autouse=True)
def _restore_structlog():
    yield
    structlog.reset_defaults()
    config.get_settings.cache_clear()


def test_configure_logging_uses_json_renderer():
    configure_logging(logging.DEBUG)

    processors = structlog.get_config()["processors"]

    assert any(isinstance(item, structlog.processors.JSONRenderer) for item in processors)
    assert structlog.contextvars.merge_contextvars in processors


def test_configure_logging_reads_level_from_environment(monkeypatch):
    monkeypatch.setenv("DEBOUNCER_LOG_LEVEL", "warning")
    config.get_settings.cache_clear()
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging()

    assert calls == [{"level": "WARNING"}]
