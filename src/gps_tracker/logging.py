import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Alert delivery outcomes are only ever reported through this logger.
ALERT_LOGGER = "gps_tracker.notifier"


def configure_logging(level: str = "INFO") -> int:
    """
    Configure logging for the relay and return the numeric root level.

    Unknown level names fall back to INFO. The alert logger never goes quieter
    than INFO, so "alert sent" / "error sending alert" stay visible even when the
    relay runs at WARNING.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    logging.getLogger(ALERT_LOGGER).setLevel(min(numeric_level, logging.INFO))
    return numeric_level
