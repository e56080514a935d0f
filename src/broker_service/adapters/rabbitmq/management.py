"""RabbitMQ HTTP management API reads."""

from urllib.parse import quote

import httpx

from broker_service.management import ManagementClient, census_from_listing
from broker_service.models.message import Queue

# queue object field -> Queue.info key
_INFO_KEYS = {
    "messages": "Size",
    "consumers": "Consumers",
}


def parse_queue_list(response: httpx.Response) -> list[Queue]:
    """Parse /api/queues/{vhost}; statistics the broker omits stay absent."""
    entries = response.json()
    if not isinstance(entries, list):
        raise ValueError("expected a JSON array of queues")

    queues = []
    for entry in entries:
        info = {
            key: str(entry[field]) for field, key in _INFO_KEYS.items() if entry.get(field) is not None
        }
        queues.append(Queue(name=entry["name"], info=info))
    return queues


class RabbitMQManagement:
    """Queue listing and census for one virtual host."""

    def __init__(self, client: ManagementClient, virtual_host: str = "/"):
        self._client = client
        self.virtual_host = virtual_host or "/"

    def list_queues(self) -> list[Queue]:
        vhost = quote(self.virtual_host, safe="")
        return self._client.get(f"/api/queues/{vhost}", parse_queue_list)

    def queue_size(self, name: str) -> int:
        return census_from_listing(self.list_queues(), name)

    def close(self) -> None:
        self._client.close()
