"""Tests for logging_setup.py and network.py."""

import logging
import socket
from unittest.mock import patch

import pytest

from etnopapers.logging_setup import LOG_FILE_NAME, setup_logging
from etnopapers.network import NetworkProbe


@pytest.fixture
def package_logger():
    logger = logging.getLogger("etnopapers")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestSetupLogging:

    def test_repeat_calls_do_not_stack_handlers(self, package_logger):
        setup_logging(logging.INFO)
        setup_logging(logging.DEBUG)
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.DEBUG

    def test_log_file(self, package_logger, tmp_path):
        setup_logging(logging.INFO, log_dir=tmp_path / "logs")
        logging.getLogger("etnopapers.extractor").info("Extraction started")

        for handler in package_logger.handlers:
            handler.flush()
        content = (tmp_path / "logs" / LOG_FILE_NAME).read_text(encoding="utf-8")
        assert "| INFO     | etnopapers.extractor | Extraction started" in content


class TestNetworkProbe:

    def test_reachable(self):
        with patch("etnopapers.network.socket.create_connection") as create_connection:
            assert NetworkProbe().is_reachable(1000)
        create_connection.assert_called_once_with(("8.8.8.8", 53), timeout=1.0)

    def test_unreachable(self):
        with patch("etnopapers.network.socket.create_connection", side_effect=socket.timeout()):
            assert not NetworkProbe("10.255.255.1", 9).is_reachable(10)
