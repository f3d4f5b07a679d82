"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest
import structlog

from dhdctl.config.logging import HANDLER_NAME, configure_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore root logger state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    dhd = logging.getLogger("dhdctl")
    dhd_level = dhd.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    dhd.setLevel(dhd_level)


class TestConfigureLogging:
    def test_verbose_enables_debug(self) -> None:
        configure_logging(verbose=True)
        assert logging.getLogger("dhdctl").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_quiet_by_default(self) -> None:
        configure_logging()
        assert logging.getLogger("dhdctl").level == logging.WARNING

    def test_reconfigure_replaces_handler(self) -> None:
        configure_logging()
        configure_logging(log_json=True)
        ours = [h for h in logging.getLogger().handlers if h.get_name() == HANDLER_NAME]
        assert len(ours) == 1

    def test_json_lines_on_stderr(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        structlog.get_logger("dhdctl.engine.executor").warning("atom_failed", module="git")
        captured = capfd.readouterr()
        assert captured.out == ""
        parsed = json.loads(captured.err.strip())
        assert parsed["event"] == "atom_failed"
        assert parsed["module"] == "git"
        assert parsed["level"] == "warning"
        assert parsed["logger"] == "dhdctl.engine.executor"

    def test_stdlib_loggers_are_rendered(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("dhdctl.engine.planner").debug("Planned %d modules", 3)
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "Planned 3 modules"
        assert parsed["level"] == "debug"
