"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest
import structlog

from querystate.config.logging import configure_logging
from querystate.domain.keys import QueryKeys


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore root logger state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    qs = logging.getLogger("querystate")
    qs_level = qs.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    qs.setLevel(qs_level)


class TestConfigureLogging:
    def test_verbose_enables_debug(self) -> None:
        configure_logging(verbose=True, log_json=False)
        assert logging.getLogger("querystate").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

    def test_non_verbose_sets_warning(self) -> None:
        configure_logging(verbose=False, log_json=False)
        assert logging.getLogger("querystate").level == logging.WARNING

    def test_json_mode_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        log = structlog.get_logger("querystate.cache")
        log.warning("cache.fetch.retry", key="tests/list", attempt=1)
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "cache.fetch.retry"
        assert parsed["key"] == "tests/list"
        assert parsed["level"] == "warning"
        assert parsed["logger"] == "querystate.cache"
        assert "timestamp" in parsed

    def test_stdlib_logger_is_structured(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("querystate.services").warning("plain %s", "message")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "plain message"
        assert parsed["logger"] == "querystate.services"

    def test_debug_suppressed_when_quiet(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=False, log_json=True)
        structlog.get_logger("querystate.cache").debug("cache.fetch.start")
        assert capfd.readouterr().err == ""

    def test_query_key_logged_in_url_form(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        structlog.get_logger("querystate.cache").info("cache.fetch.start", key=QueryKeys.test_detail("42"))
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["key"] == "tests/detail/42"

    def test_reconfigure_replaces_own_handler_only(self) -> None:
        root = logging.getLogger()
        foreign = logging.NullHandler()
        root.addHandler(foreign)
        configure_logging()
        configure_logging(log_json=True)
        assert foreign in root.handlers
        assert len(root.handlers) == len(set(root.handlers))
        ours = [h for h in root.handlers if type(h).__name__ == "_QuerystateHandler"]
        assert len(ours) == 1

    def test_http_client_loggers_stay_quiet(self) -> None:
        configure_logging(verbose=True)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
