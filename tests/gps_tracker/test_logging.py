import logging

import pytest

from gps_tracker.logging import ALERT_LOGGER, configure_logging


@pytest.fixture
def alert_logger():
    logger = logging.getLogger(ALERT_LOGGER)
    previous = logger.level
    yield logger
    logger.setLevel(previous)


def test_quiet_relay_still_logs_alert_outcomes(alert_logger):
    assert configure_logging("warning") == logging.WARNING
    assert alert_logger.getEffectiveLevel() == logging.INFO


def test_debug_level_reaches_alert_logger(alert_logger):
    assert configure_logging("DEBUG") == logging.DEBUG
    assert alert_logger.level == logging.DEBUG


@pytest.mark.parametrize("name", ["verbose", "BASIC_FORMAT"])
def test_unknown_level_falls_back_to_info(alert_logger, name):
    assert configure_logging(name) == logging.INFO
