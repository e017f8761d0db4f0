"""Tests for logging configuration."""

import logging

import pytest

from pomoflow import config


@pytest.fixture
def pomoflow_logger():
    logger = logging.getLogger("pomoflow")
    saved = list(logger.handlers), logger.level
    logger.handlers = []
    yield logger
    logger.handlers, level = saved
    logger.setLevel(level)


class TestConfigureLogging:
    def test_single_named_handler(self, pomoflow_logger):
        config.configure_logging()
        config.configure_logging(verbose=True)

        handlers = [h for h in pomoflow_logger.handlers if h.get_name() == config.HANDLER_NAME]
        assert len(handlers) == 1
        assert pomoflow_logger.level == logging.DEBUG

    def test_quiet_by_default(self, pomoflow_logger):
        config.configure_logging()
        assert pomoflow_logger.level == logging.WARNING
