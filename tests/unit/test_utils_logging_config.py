"""Unit tests for the logging setup."""

import logging
from typing import Generator

import pytest
import structlog

from github_branch_sync.utils import configure_logging


@pytest.fixture
def restore_root_logger() -> Generator[logging.Logger, None, None]:
    """Restore the root logger's handlers and level after the test."""
    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level
    yield root_logger
    root_logger.handlers = handlers
    root_logger.setLevel(level)


@pytest.mark.parametrize("debug, level", [(True, logging.DEBUG), (False, logging.INFO)])
def test_configure_logging_sets_level(restore_root_logger: logging.Logger, debug: bool, level: int) -> None:
    """Test that debug mode lowers the root log level."""
    configure_logging(debug)

    assert restore_root_logger.level == level
    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_configured_logger_renders_key_values(restore_root_logger: logging.Logger, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that events are rendered with their key/value fields."""
    configure_logging(False)

    structlog.get_logger("github_branch_sync.test").info("Synced branch snapshot", sha="abc123")

    captured = capsys.readouterr()
    assert "Synced branch snapshot" in captured.err
    assert "sha=abc123" in captured.err
