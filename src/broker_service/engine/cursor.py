"""Bounded, timeout-guarded sequential drain over one queue."""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from broker_service.errors import DrainFailedError, ReceiveError, SettleError
from broker_service.protocols.transport import ReceiverLink

logger = logging.getLogger(__name__)

RECEIVE_TIMEOUT = 1.0
MAX_RECEIVE_ERRORS = 10
ENUMERATION_LIMIT = 50_000
PUBLISH_TIMEOUT = 30.0


@dataclass(frozen=True)
class DrainPolicy:
    """Design constants governing one drain."""

    receive_timeout: float = RECEIVE_TIMEOUT
    max_receive_errors: int = MAX_RECEIVE_ERRORS
    enumeration_limit: int = ENUMERATION_LIMIT
    publish_timeout: float = PUBLISH_TIMEOUT


class HeldMessage:
    """
    A drained message that holds a broker-side lease until it is settled.

    Exactly one terminal action is legal: finalize() removes the message
    permanently, release() returns it to its queue.
    """

    def __init__(self, raw: Any, receiver: ReceiverLink):
        self.raw = raw
        self._receiver = receiver
        self._settled = False

    @property
    def settled(self) -> bool:
        return self._settled

    def finalize(self) -> None:
        """Permanently remove the message. Raises SettleError if the broker refuses."""
        if self._settled:
            raise RuntimeError("message already settled")
        self._receiver.accept(self.raw)
        self._settled = True

    def release(self) -> None:
        """Return the message to its queue; failures are logged, never raised."""
        if self._settled:
            return
        self._settled = True
        try:
            self._receiver.release(self.raw)
        except SettleError as exc:
            # The lease expires broker-side when the receiver closes.
            logger.warning("Unable to release message: %s", exc)


class DrainCursor:
    """
    Lazy, finite, non-restartable sequence of held messages from one receiver.

    Use as a context manager: leaving the block releases every message that
    was yielded but not settled, whatever the exit path.
    """

    def __init__(
        self,
        receiver: ReceiverLink,
        bound: int,
        policy: DrainPolicy = DrainPolicy(),
        cancel: Optional[threading.Event] = None,
        queue: str = "",
    ):
        self.receiver = receiver
        self.bound = max(bound, 0)
        self.policy = policy
        self.cancel = cancel
        self.queue = queue
        self.drained = 0
        self.cancelled = False
        self._held: list[HeldMessage] = []
        self._started = False

    def __enter__(self) -> "DrainCursor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __iter__(self) -> Iterator[HeldMessage]:
        if self._started:
            raise RuntimeError("a drain cursor cannot be restarted")
        self._started = True
        return self._drain()

    def _drain(self) -> Iterator[HeldMessage]:
        consecutive_errors = 0
        for _ in range(self.bound):
            if self.cancel is not None and self.cancel.is_set():
                self.cancelled = True
                logger.info("Drain of %s cancelled after %d messages", self.queue, self.drained)
                return

            try:
                raw = self.receiver.receive(self.policy.receive_timeout)
            except ReceiveError as exc:
                consecutive_errors += 1
                logger.warning("Unable to receive from %s: %s", self.queue, exc)
                if consecutive_errors > self.policy.max_receive_errors:
                    raise DrainFailedError(
                        f"unable to receive messages from {self.queue}: {exc}"
                    ) from exc
                continue

            if raw is None:
                logger.info("Drain of %s timed out after %d messages", self.queue, self.drained)
                return

            consecutive_errors = 0
            self.drained += 1
            held = HeldMessage(raw, self.receiver)
            self._held.append(held)
            yield held

    def close(self) -> None:
        """Release every held message that has not been settled."""
        unsettled = [held for held in self._held if not held.settled]
        if unsettled:
            logger.debug("Returning %d messages to %s", len(unsettled), self.queue)
        for held in unsettled:
            held.release()
        self._held.clear()
