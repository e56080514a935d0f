"""Broker adapter protocol definitions."""

import threading
from typing import Optional, Protocol, runtime_checkable

from broker_service.errors import BrokerError
from broker_service.models.message import Queue, StandardMessage


@runtime_checkable
class BrokerAdapter(Protocol):
    """
    Queue-management capabilities implemented once per backend.

    Single-item operations raise a BrokerError on failure. Multi-item
    operations return one error per problem encountered, in the order the
    targets were attempted; an empty list means every target succeeded.
    A backend lacking a capability raises (or returns)
    CapabilityNotImplementedError for every call to that operation.
    """

    def get_all_messages(
        self, queue: str, *, cancel: Optional[threading.Event] = None
    ) -> list[StandardMessage]:
        """Return a non-destructive snapshot of the queue's messages."""
        ...

    def get_all_queues(self) -> list[Queue]:
        """Return every queue known to the management surface."""
        ...

    def purge(self, queue: str, *, cancel: Optional[threading.Event] = None) -> None:
        """Remove every message counted at census time."""
        ...

    def delete_one(
        self, queue: str, message_id: str, *, cancel: Optional[threading.Event] = None
    ) -> None:
        """Remove the message with the given ID."""
        ...

    def delete_many(
        self, queue: str, message_ids: list[str], *, cancel: Optional[threading.Event] = None
    ) -> list[BrokerError]:
        """Remove every message whose ID is in message_ids."""
        ...

    def move_one(
        self,
        source: str,
        destination: str,
        message_id: str,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Relocate the message with the given ID to destination."""
        ...

    def move(
        self,
        source: str,
        destination: str,
        message_ids: list[str],
        *,
        cancel: Optional[threading.Event] = None,
    ) -> list[BrokerError]:
        """Relocate every message whose ID is in message_ids to destination."""
        ...

    def close(self) -> None:
        """Release connections held by the adapter."""
        ...
