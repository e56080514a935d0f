"""Logging setup for the service entry point."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Send every log record at or above level to stderr."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr)
    # pika and proton are chatty at INFO
    logging.getLogger("pika").setLevel(logging.WARNING)
    logging.getLogger("proton").setLevel(logging.WARNING)
