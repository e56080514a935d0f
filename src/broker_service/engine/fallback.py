"""Ordered fallback across a comma-separated endpoint list."""

import logging
from typing import Callable, Iterable, Optional, TypeVar

from broker_service.errors import BrokerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def split_endpoints(value: str) -> list[str]:
    """Split a comma-separated endpoint list, dropping blank entries."""
    return [part.strip() for part in value.split(",") if part.strip()]


def first_success(
    endpoints: Iterable[str],
    attempt: Callable[[str], T],
    *,
    retry_on: tuple[type[BaseException], ...],
    error: type[BrokerError],
    what: str = "endpoint",
) -> T:
    """
    Call attempt() for each endpoint in order and return the first result.

    Args:
        endpoints: Ordered endpoints to try
        attempt: Callable invoked with one endpoint
        retry_on: Exception types that move on to the next endpoint
        error: BrokerError subclass raised when every endpoint fails
        what: Label used in log and error messages

    Returns:
        The first successful result

    Raises:
        error: No endpoint succeeded (chained to the last failure)
    """
    last_failure: Optional[BaseException] = None
    tried = 0
    for endpoint in endpoints:
        tried += 1
        logger.info("Attempting %s %s", what, endpoint)
        try:
            return attempt(endpoint)
        except retry_on as exc:
            logger.warning("Attempt against %s %s failed: %s", what, endpoint, exc)
            last_failure = exc

    if tried == 0:
        raise error(f"No {what} configured")
    raise error(f"Unable to reach any {what} ({tried} tried): {last_failure}") from last_failure
