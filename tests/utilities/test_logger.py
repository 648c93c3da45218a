"""
Tests for the logging setup.
"""

import logging

import pytest

from utilities.logger import get_logger, setup_logging


@pytest.fixture
def root_handlers():
    """Restore the root logger's handlers after the test."""
    root_logger = logging.getLogger()
    original = list(root_logger.handlers)
    yield root_logger
    for handler in root_logger.handlers[:]:
        if handler not in original:
            root_logger.removeHandler(handler)
            handler.close()


def _file_handlers(root_logger, path):
    return [
        handler for handler in root_logger.handlers
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(path)
    ]


def test_repeated_setup_keeps_one_file_handler(tmp_path, root_handlers):
    log_file = tmp_path / "logs" / "api.log"

    setup_logging(log_level="INFO", log_format="json", log_file=str(log_file))
    setup_logging(log_level="DEBUG", log_format="json", log_file=str(log_file))

    handlers = _file_handlers(root_handlers, log_file)
    assert len(handlers) == 1
    assert handlers[0].level == logging.DEBUG
    assert log_file.parent.is_dir()


def test_events_reach_the_log_file(tmp_path, root_handlers):
    log_file = tmp_path / "api.log"
    setup_logging(log_level="INFO", log_format="json", log_file=str(log_file))

    logging.getLogger("books.test").setLevel(logging.INFO)
    get_logger("books.test").info("Book created", book_id=7)
    for handler in _file_handlers(root_handlers, log_file):
        handler.flush()

    content = log_file.read_text()
    assert "Book created" in content
    assert '"book_id": 7' in content
