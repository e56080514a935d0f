"""Classification of drained messages against a target ID set."""

import enum
import logging
from typing import Any, Callable, Collection, Iterable, Optional

from broker_service.engine.cursor import DrainCursor, HeldMessage
from broker_service.errors import (
    BrokerError,
    DrainFailedError,
    MessageNotFoundError,
    OperationCancelledError,
    PublishFailedError,
    SettleError,
)

logger = logging.getLogger(__name__)

Action = Callable[[HeldMessage], None]
IdExtractor = Callable[[Any], Optional[str]]


class Selection(enum.Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"


def select(message_id: Optional[str], targets: Collection[str]) -> Selection:
    """
    Classify a message by exact string equality against the target IDs.

    A message whose identifier could not be extracted is never matched.
    """
    if not isinstance(message_id, str):
        return Selection.UNMATCHED
    return Selection.MATCHED if message_id in targets else Selection.UNMATCHED


def _unique(message_ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(message_ids))


def _act(held: HeldMessage, message_id: str, action: Action) -> Optional[BrokerError]:
    try:
        action(held)
    except PublishFailedError as exc:
        return exc
    except SettleError as exc:
        logger.error("Unable to finalize message %s: %s", message_id, exc)
        return exc
    return None


def map_then_act(
    cursor: DrainCursor,
    message_id: IdExtractor,
    targets: Iterable[str],
    action: Action,
) -> list[BrokerError]:
    """
    Drain every available message, keying the matched ones by ID, then act
    on each target in the caller's order.

    Every drained message that is not finalized (unmatched, unidentifiable,
    duplicate or failed) is returned to the queue when the cursor closes.
    A drain that aborts or is cancelled acts on nothing.

    Returns:
        One error per target that was not found or whose action failed
    """
    ordered = _unique(targets)
    wanted = set(ordered)
    held_by_id: dict[str, HeldMessage] = {}
    try:
        for held in cursor:
            extracted = message_id(held.raw)
            if select(extracted, wanted) is Selection.MATCHED:
                held_by_id.setdefault(extracted, held)
    except DrainFailedError as exc:
        return [exc]
    if cursor.cancelled:
        return [OperationCancelledError(cursor.queue, cursor.drained)]

    errors: list[BrokerError] = []
    for target in ordered:
        held = held_by_id.pop(target, None)
        if held is None:
            errors.append(MessageNotFoundError(target, cursor.queue))
            continue
        error = _act(held, target, action)
        if error is not None:
            errors.append(error)
    return errors


def scan_and_act(
    cursor: DrainCursor,
    message_id: IdExtractor,
    targets: Iterable[str],
    action: Action,
) -> list[BrokerError]:
    """
    Classify and act on each message as it is drained.

    Unmatched messages are released immediately. The drain stops as soon as
    every target has been seen.

    Returns:
        One error per target that was not found or whose action failed
    """
    ordered = _unique(targets)
    remaining = set(ordered)
    errors: list[BrokerError] = []
    try:
        for held in cursor:
            extracted = message_id(held.raw)
            if select(extracted, remaining) is Selection.UNMATCHED:
                held.release()
                continue
            remaining.discard(extracted)
            error = _act(held, extracted, action)
            if error is not None:
                errors.append(error)
            if not remaining:
                break
    except DrainFailedError as exc:
        errors.append(exc)
        return errors
    if cursor.cancelled:
        errors.append(OperationCancelledError(cursor.queue, cursor.drained))
        return errors

    errors.extend(
        MessageNotFoundError(target, cursor.queue) for target in ordered if target in remaining
    )
    return errors
