"""Tests for logging setup."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from livepipe.config import Settings
from livepipe.logs import setup_logging


@pytest.fixture(autouse=True)
def reset_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("livepipe")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


class TestSetupLogging:
    def test_without_file_logs_nowhere(self) -> None:
        logger = setup_logging(Settings())
        assert logger.name == "livepipe"
        assert logger.propagate is False
        assert [type(h) for h in logger.handlers] == [logging.NullHandler]

    def test_level_from_settings(self) -> None:
        logger = setup_logging(Settings(log_level="DEBUG"))
        assert logger.level == logging.DEBUG

    def test_writes_to_log_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "livepipe.log"
        setup_logging(Settings(log_file=str(log_file), log_level="INFO"))
        logging.getLogger("livepipe.executor").info("started %r", "sort")
        for handler in logging.getLogger("livepipe").handlers:
            handler.flush()
        text = log_file.read_text()
        assert "INFO" in text
        assert "livepipe.executor: started 'sort'" in text

    def test_filters_below_level(self, tmp_path: Path) -> None:
        log_file = tmp_path / "livepipe.log"
        setup_logging(Settings(log_file=str(log_file), log_level="WARNING"))
        logging.getLogger("livepipe.controller").debug("hidden")
        assert "hidden" not in log_file.read_text()

    def test_repeated_setup_replaces_handlers(self, tmp_path: Path) -> None:
        setup_logging(Settings(log_file=str(tmp_path / "a.log")))
        logger = setup_logging(Settings())
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.NullHandler)
