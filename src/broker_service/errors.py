"""Error taxonomy for broker adapter operations."""

from typing import Optional


class BrokerError(Exception):
    """Base class for every failure surfaced by an adapter."""


class ConnectFailedError(BrokerError):
    """No configured broker endpoint accepted a connection."""


class ManagementUnavailableError(BrokerError):
    """No configured management endpoint answered."""


class DrainFailedError(BrokerError):
    """Too many consecutive receive errors; the drain was aborted."""


class ReceiveError(BrokerError):
    """A single receive call failed (not a timeout)."""


class SettleError(BrokerError):
    """Accepting or releasing a held message failed."""


class MessageNotFoundError(BrokerError):
    """A requested message ID was not observed during the bounded drain."""

    def __init__(self, message_id: str, queue: Optional[str] = None):
        self.message_id = message_id
        self.queue = queue
        where = f" in {queue}" if queue else ""
        super().__init__(f"Did not find message {message_id}{where}")


class PublishFailedError(BrokerError):
    """Publishing to the destination could not be confirmed."""

    def __init__(self, message_id: Optional[str], reason: str):
        self.message_id = message_id
        self.reason = reason
        super().__init__(f"Message ID: {message_id}; {reason}")


class CapabilityNotImplementedError(BrokerError, NotImplementedError):
    """The backend does not support the requested operation."""

    def __init__(self, operation: str, backend: str):
        self.operation = operation
        self.backend = backend
        super().__init__(f"{operation} is not implemented for {backend}")


class SessionError(BrokerError):
    """Opening a session, receiver or sender for one operation failed."""


class OperationCancelledError(BrokerError):
    """The operation's deadline passed before the drain completed."""

    def __init__(self, queue: Optional[str] = None, drained: int = 0):
        self.queue = queue
        self.drained = drained
        where = f" on {queue}" if queue else ""
        super().__init__(f"Operation{where} cancelled after {drained} messages")
