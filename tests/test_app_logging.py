"""Tests for logging configuration."""

import logging

import pytest

from retail_coordinator.app_logging import configure_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger("retail_coordinator")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_configure_logging_idempotent(package_logger) -> None:
    configure_logging()
    first_count = len(package_logger.handlers)

    configure_logging()
    second_count = len(package_logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert package_logger.propagate is False


def test_configure_logging_accepts_level_names(package_logger) -> None:
    logger = configure_logging("debug")

    assert logger is package_logger
    assert logger.level == logging.DEBUG
    with pytest.raises(ValueError):
        configure_logging("chatty")
