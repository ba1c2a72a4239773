"""Tests for logging setup."""

import io
import logging

import pytest

from kbchat.utils.config import Settings
from kbchat.utils.logging import HANDLER_NAME, HTTP_CLIENT_LOGGERS, configure_logging, parse_level


@pytest.fixture(autouse=True)
def restore_loggers():
    yield
    logger = logging.getLogger("kbchat")
    for handler in [h for h in logger.handlers if h.get_name() == HANDLER_NAME]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    for name in HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)


class TestConfigureLogging:
    """Tests for configuring the package loggers from settings."""

    def test_applies_settings_level(self):
        logger = configure_logging(Settings(log_level="warning"), stream=io.StringIO())

        assert logger.name == "kbchat"
        assert logger.level == logging.WARNING

    def test_writes_formatted_records(self):
        stream = io.StringIO()
        configure_logging(Settings(log_level="INFO"), stream=stream)

        logging.getLogger("kbchat.knowledge").info("Collection ready")

        assert " - kbchat.knowledge - INFO - Collection ready" in stream.getvalue()

    def test_repeated_calls_keep_one_handler(self):
        configure_logging(Settings(log_level="INFO"), stream=io.StringIO())
        logger = configure_logging(Settings(log_level="DEBUG"), stream=io.StringIO())

        handlers = [h for h in logger.handlers if h.get_name() == HANDLER_NAME]
        assert len(handlers) == 1
        assert logger.level == logging.DEBUG

    def test_http_client_request_logs_quieted(self):
        configure_logging(Settings(log_level="INFO"), stream=io.StringIO())
        assert logging.getLogger("httpx").level == logging.WARNING

        configure_logging(Settings(log_level="DEBUG"), stream=io.StringIO())
        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging(Settings(log_level="loud"))


def test_parse_level():
    assert parse_level("error") == logging.ERROR
    assert parse_level(logging.INFO) == logging.INFO
