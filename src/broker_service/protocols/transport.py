"""Transport protocol definitions used by the drain engine."""

from contextlib import AbstractContextManager
from typing import Any, Optional, Protocol, runtime_checkable

from broker_service.models.message import Queue, StandardMessage


@runtime_checkable
class ReceiverLink(Protocol):
    """A consumer attached to one queue for the duration of one operation."""

    def receive(self, timeout: float) -> Optional[Any]:
        """
        Receive one message without settling it.

        Args:
            timeout: Seconds to wait for a message

        Returns:
            The transport-native message, or None when the timeout elapsed

        Raises:
            ReceiveError: The receive call itself failed
        """
        ...

    def accept(self, raw: Any) -> None:
        """Finalize removal of a held message. Raises SettleError."""
        ...

    def release(self, raw: Any) -> None:
        """Return a held message to its queue. Raises SettleError."""
        ...


@runtime_checkable
class SenderLink(Protocol):
    """A producer attached to one destination for the duration of one operation."""

    def send(self, raw: Any, timeout: float) -> None:
        """
        Publish a copy of a drained message and wait for the broker's confirmation.

        Raises:
            PublishFailedError: The publish was rejected or not confirmed in time
        """
        ...


@runtime_checkable
class Transport(Protocol):
    """
    Backend capabilities required by the drain engine.

    Receivers and senders are scoped resources: the context managers close
    them on every exit path and never let a close failure escape.
    """

    #: True when a released message is not redelivered to the same receiver
    #: before the drain finishes, so scan-and-act is safe.
    supports_early_release: bool

    def open_receiver(self, queue: str) -> AbstractContextManager[ReceiverLink]:
        ...

    def open_sender(self, queue: str) -> AbstractContextManager[SenderLink]:
        ...

    def message_id(self, raw: Any) -> Optional[str]:
        """Return the message's string identifier, or None when absent or not a string."""
        ...

    def project(self, raw: Any) -> StandardMessage:
        ...

    def census(self, queue: str) -> int:
        """Return the queue's advisory message count. Raises ManagementUnavailableError."""
        ...

    def list_queues(self) -> list[Queue]:
        ...

    def close(self) -> None:
        """Close the shared broker connection."""
        ...
