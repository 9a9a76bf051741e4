"""Tests for structured logging."""

import json
import logging

from viralnote.utils.logging import StructuredFormatter, get_logger, log


def _record(caplog):
    return caplog.records[-1]


def test_json_format(caplog):
    caplog.set_level(logging.INFO, logger="viralnote")
    log.info(get_logger(), "llm.invoker", "analysis_done", "ok", model="m", skipped=None)

    data = json.loads(StructuredFormatter().format(_record(caplog)))
    assert data["level"] == "INFO"
    assert data["module"] == "llm.invoker"
    assert data["action"] == "analysis_done"
    assert data["msg"] == "ok"
    assert data["model"] == "m"
    assert "skipped" not in data


def test_pretty_format(caplog):
    caplog.set_level(logging.INFO, logger="viralnote")
    log.warning(get_logger(), "llm.invoker", "model_fallback", "switching", model="m")

    line = StructuredFormatter(pretty=True).format(_record(caplog))
    assert "W [LLM.INVOKER" in line
    assert "model_fallback: switching | model=m" in line


def test_trace_requires_debug_toggle(caplog, monkeypatch):
    caplog.set_level(logging.DEBUG, logger="viralnote")

    log.trace(get_logger(), "llm.normalizer", "raw", "hidden")
    assert not any(r.getMessage() == "hidden" for r in caplog.records)

    monkeypatch.setenv("ENABLE_DEBUG_LOGGING", "true")
    log.trace(get_logger(), "llm.normalizer", "raw", "shown")
    assert any(r.getMessage() == "shown" for r in caplog.records)


def test_configure_logging_honours_debug_toggle(monkeypatch):
    from viralnote.utils.logging import configure_logging

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("ENABLE_DEBUG_LOGGING", "true")
    try:
        configure_logging()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
