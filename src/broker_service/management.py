"""HTTP access to a broker's management surface with endpoint fallback."""

import logging
from typing import Callable, Optional, TypeVar
from xml.etree.ElementTree import ParseError

import httpx

from broker_service.engine.fallback import first_success
from broker_service.errors import ManagementUnavailableError
from broker_service.models.message import Queue

logger = logging.getLogger(__name__)

T = TypeVar("T")

HTTP_TIMEOUT = 10.0


class ManagementClient:
    """
    Basic-auth HTTP client over an ordered list of console base URLs.

    A request that fails on one console (transport error, non-2xx status or
    unparseable body) falls through to the next before failing the call.
    """

    def __init__(
        self,
        endpoints: list[str],
        username: str = "",
        password: str = "",
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.endpoints = [endpoint.rstrip("/") for endpoint in endpoints]
        auth = (username, password) if username else None
        self._client = httpx.Client(auth=auth, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def get(self, path: str, parse: Callable[[httpx.Response], T]) -> T:
        """
        GET path from the first console that answers with a parseable body.

        Raises:
            ManagementUnavailableError: Every console failed
        """

        def attempt(endpoint: str) -> T:
            response = self._client.get(f"{endpoint}{path}")
            response.raise_for_status()
            return parse(response)

        return first_success(
            self.endpoints,
            attempt,
            retry_on=(httpx.HTTPError, ValueError, KeyError, ParseError),
            error=ManagementUnavailableError,
            what="management console",
        )


def census_from_listing(queues: list[Queue], name: str) -> int:
    """Return the Size of the named queue from a listing; 0 when unknown."""
    for queue in queues:
        if queue.name != name:
            continue
        try:
            return int(queue.info["Size"])
        except (KeyError, ValueError):
            logger.warning("Queue %s has no usable size: %s", name, queue.info)
            return 0
    logger.warning("Queue %s not listed by the management surface", name)
    return 0
