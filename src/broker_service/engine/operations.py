"""Queue operations emulated on top of sequential consume-and-settle."""

import enum
import functools
import logging
import threading
from typing import Callable, Optional, TypeVar

from broker_service.engine.cursor import DrainCursor, DrainPolicy, HeldMessage
from broker_service.engine.redistribution import redirect
from broker_service.engine.selection import map_then_act, scan_and_act
from broker_service.errors import BrokerError, MessageNotFoundError, OperationCancelledError
from broker_service.models.message import Queue, StandardMessage
from broker_service.protocols.transport import Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Strategy(enum.Enum):
    MAP_THEN_ACT = "map-then-act"
    SCAN_AND_ACT = "scan-and-act"


_STRATEGIES = {
    Strategy.MAP_THEN_ACT: map_then_act,
    Strategy.SCAN_AND_ACT: scan_and_act,
}


def list_messages(
    transport: Transport,
    queue: str,
    policy: DrainPolicy,
    cancel: Optional[threading.Event] = None,
) -> list[StandardMessage]:
    """Drain up to the enumeration limit and return every message to the queue."""
    with transport.open_receiver(queue) as receiver, DrainCursor(
        receiver, policy.enumeration_limit, policy, cancel, queue
    ) as cursor:
        messages = [transport.project(held.raw) for held in cursor]
    logger.info("Listed %d messages from %s", len(messages), queue)
    return messages


def purge(
    transport: Transport,
    queue: str,
    policy: DrainPolicy,
    cancel: Optional[threading.Event] = None,
) -> int:
    """
    Finalize every message drained within the census bound.

    Returns:
        Number of messages removed

    Raises:
        ManagementUnavailableError: The census could not be taken
        DrainFailedError: Too many consecutive receive errors
        SettleError: The broker refused a removal
        OperationCancelledError: The deadline passed before the census was drained
    """
    bound = transport.census(queue)
    logger.info("Purging up to %d messages from %s", bound, queue)
    purged = 0
    with transport.open_receiver(queue) as receiver, DrainCursor(
        receiver, bound, policy, cancel, queue
    ) as cursor:
        for held in cursor:
            held.finalize()
            purged += 1
    logger.info("Purged %d messages from %s", purged, queue)
    if cursor.cancelled:
        raise OperationCancelledError(queue, cursor.drained)
    return purged


def delete(
    transport: Transport,
    queue: str,
    message_ids: list[str],
    policy: DrainPolicy,
    strategy: Strategy,
    cancel: Optional[threading.Event] = None,
) -> list[BrokerError]:
    """
    Finalize every drained message whose ID is targeted; return the rest.

    Raises:
        ManagementUnavailableError: The census could not be taken
        SessionError: The receiver could not be opened
    """
    bound = transport.census(queue)
    logger.info("Deleting %d messages from %s (census %d, %s)",
                len(message_ids), queue, bound, strategy.value)
    select_and_act = _STRATEGIES[strategy]
    with transport.open_receiver(queue) as receiver, DrainCursor(
        receiver, bound, policy, cancel, queue
    ) as cursor:
        return select_and_act(cursor, transport.message_id, message_ids, HeldMessage.finalize)


def move(
    transport: Transport,
    source: str,
    destination: str,
    message_ids: list[str],
    policy: DrainPolicy,
    strategy: Strategy,
    cancel: Optional[threading.Event] = None,
) -> list[BrokerError]:
    """
    Redirect every drained message whose ID is targeted to destination.

    Raises:
        ManagementUnavailableError: The census could not be taken
        SessionError: The receiver or sender could not be opened
    """
    bound = transport.census(source)
    logger.info("Moving %d messages from %s to %s (census %d, %s)",
                len(message_ids), source, destination, bound, strategy.value)
    select_and_act = _STRATEGIES[strategy]
    with transport.open_receiver(source) as receiver, transport.open_sender(
        destination
    ) as sender, DrainCursor(receiver, bound, policy, cancel, source) as cursor:
        action = functools.partial(redirect, sender=sender, timeout=policy.publish_timeout)
        return select_and_act(cursor, transport.message_id, message_ids, action)


class DrainingAdapter:
    """
    BrokerAdapter for backends whose transport supports drain-and-settle.

    Operations on one adapter run one at a time: the blocking client
    connections underneath are shared and not thread-safe.

    Single-item operations use scan-and-act when the transport supports early
    release, map-then-act otherwise; multi-item operations always use
    map-then-act. A target that is never observed is reported by multi-item
    operations; single-item operations only raise for it when report_missing
    is set.
    """

    def __init__(
        self,
        name: str,
        transport: Transport,
        policy: DrainPolicy = DrainPolicy(),
        *,
        report_missing: bool = False,
    ):
        self.name = name
        self.transport = transport
        self.policy = policy
        self.report_missing = report_missing
        self._lock = threading.Lock()

    @property
    def single_item_strategy(self) -> Strategy:
        if self.transport.supports_early_release:
            return Strategy.SCAN_AND_ACT
        return Strategy.MAP_THEN_ACT

    def _exclusive(self, operation: Callable[..., T], *args, **kwargs) -> T:
        with self._lock:
            return operation(self.transport, *args, policy=self.policy, **kwargs)

    def _raise_first(self, errors: list[BrokerError]) -> None:
        for error in errors:
            if isinstance(error, MessageNotFoundError) and not self.report_missing:
                logger.info("%s: %s; nothing to do", self.name, error)
                continue
            raise error

    def get_all_messages(
        self, queue: str, *, cancel: Optional[threading.Event] = None
    ) -> list[StandardMessage]:
        return self._exclusive(list_messages, queue, cancel=cancel)

    def get_all_queues(self) -> list[Queue]:
        return self.transport.list_queues()

    def purge(self, queue: str, *, cancel: Optional[threading.Event] = None) -> None:
        self._exclusive(purge, queue, cancel=cancel)

    def delete_one(
        self, queue: str, message_id: str, *, cancel: Optional[threading.Event] = None
    ) -> None:
        errors = self._exclusive(
            delete, queue, [message_id], strategy=self.single_item_strategy, cancel=cancel
        )
        self._raise_first(errors)

    def delete_many(
        self, queue: str, message_ids: list[str], *, cancel: Optional[threading.Event] = None
    ) -> list[BrokerError]:
        try:
            return self._exclusive(
                delete, queue, message_ids, strategy=Strategy.MAP_THEN_ACT, cancel=cancel
            )
        except BrokerError as exc:
            logger.error("%s: delete from %s failed: %s", self.name, queue, exc)
            return [exc]

    def move_one(
        self,
        source: str,
        destination: str,
        message_id: str,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        errors = self._exclusive(
            move,
            source,
            destination,
            [message_id],
            strategy=self.single_item_strategy,
            cancel=cancel,
        )
        self._raise_first(errors)

    def move(
        self,
        source: str,
        destination: str,
        message_ids: list[str],
        *,
        cancel: Optional[threading.Event] = None,
    ) -> list[BrokerError]:
        try:
            return self._exclusive(
                move,
                source,
                destination,
                message_ids,
                strategy=Strategy.MAP_THEN_ACT,
                cancel=cancel,
            )
        except BrokerError as exc:
            logger.error("%s: move from %s to %s failed: %s", self.name, source, destination, exc)
            return [exc]

    def close(self) -> None:
        with self._lock:
            self.transport.close()
