"""ActiveMQ admin console scrape."""

import logging
import xml.etree.ElementTree as ET

import httpx

from broker_service.management import ManagementClient, census_from_listing
from broker_service.models.message import Queue

logger = logging.getLogger(__name__)

QUEUES_PATH = "/admin/xml/queues.jsp"

# stats attribute -> Queue.info key
_STAT_KEYS = {
    "size": "Size",
    "consumerCount": "Consumers",
    "enqueueCount": "Enqueued",
    "dequeueCount": "Dequeued",
}


def parse_queues(response: httpx.Response) -> list[Queue]:
    """Parse the queues.jsp XML document. Missing stats stay absent."""
    root = ET.fromstring(response.content)
    if root.tag != "queues":
        raise ValueError(f"unexpected document root <{root.tag}>")

    queues = []
    for element in root.iter("queue"):
        name = element.get("name")
        if not name:
            logger.debug("Skipping queue element without a name")
            continue
        info = {}
        stats = element.find("stats")
        if stats is not None:
            for attribute, key in _STAT_KEYS.items():
                value = stats.get(attribute)
                if value is not None:
                    info[key] = value
        queues.append(Queue(name=name, info=info))
    return queues


class ActiveMQConsole:
    """Queue listing and census from the ActiveMQ web console."""

    def __init__(self, client: ManagementClient):
        self._client = client

    def list_queues(self) -> list[Queue]:
        return self._client.get(QUEUES_PATH, parse_queues)

    def queue_size(self, name: str) -> int:
        return census_from_listing(self.list_queues(), name)

    def close(self) -> None:
        self._client.close()
