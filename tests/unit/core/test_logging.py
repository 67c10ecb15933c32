# tests/unit/core/test_logging.py
"""Tests for structured logging configuration."""

import json
import logging
from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest

from sinkhub.core.logging import configure_logging, get_logger
from sinkhub.dispatch.bridge import DispatcherHandler
from sinkhub.dispatch.dispatcher import Dispatcher


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Iterator[None]:
    """configure_logging() replaces root handlers; put the originals back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestLoggingConfig:
    """Tests for logging configuration."""

    def test_get_logger_returns_logger(self) -> None:
        """get_logger returns a bound logger."""
        logger = get_logger("test")
        assert hasattr(logger, "info")
        assert hasattr(logger, "bind")

    def test_logger_outputs_structured(self, capsys: pytest.CaptureFixture[str]) -> None:
        """JSON mode writes one JSON object per event to stderr."""
        configure_logging(json_output=True)
        get_logger("test").info("test message", sink_id="intake")

        line = capsys.readouterr().err.strip().split("\n")[-1]
        data = json.loads(line)
        assert data["event"] == "test message"
        assert data["sink_id"] == "intake"

    def test_logger_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Console mode is human-readable."""
        configure_logging(json_output=False)
        get_logger("test").info("test message")

        err = capsys.readouterr().err
        assert "test message" in err
        assert not err.strip().startswith("{")

    def test_stdlib_loggers_emit_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        """stdlib loggers go through the same renderer."""
        configure_logging(json_output=True)
        logging.getLogger("test.stdlib").warning("from stdlib")

        line = capsys.readouterr().err.strip().split("\n")[-1]
        assert json.loads(line)["event"] == "from stdlib"

    def test_noisy_http_loggers_silenced(self) -> None:
        """HTTP client loggers stay at WARNING even in DEBUG mode."""
        configure_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        for name in ("httpx", "httpcore", "urllib3"):
            assert logging.getLogger(name).getEffectiveLevel() >= logging.WARNING

    def test_dispatch_bridge_handlers_kept(self) -> None:
        """Reconfiguring keeps DispatcherHandler bridges on the root logger."""
        root = logging.getLogger()
        bridge = DispatcherHandler(MagicMock(spec=Dispatcher))
        root.addHandler(bridge)
        try:
            configure_logging()
            assert bridge in root.handlers
        finally:
            root.removeHandler(bridge)
