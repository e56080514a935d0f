"""Re-publishing of matched messages to a destination queue."""

import logging

from broker_service.engine.cursor import HeldMessage
from broker_service.errors import PublishFailedError
from broker_service.protocols.transport import SenderLink

logger = logging.getLogger(__name__)


def redirect(held: HeldMessage, sender: SenderLink, timeout: float) -> None:
    """
    Publish a held message to the sender's destination, then remove the original.

    The original is finalized only after the destination confirms the
    publish. On failure it is returned to its source queue, so a failed move
    leaves the source unchanged.

    Raises:
        PublishFailedError: The destination did not confirm the publish
        SettleError: The publish succeeded but the original could not be removed
    """
    try:
        sender.send(held.raw, timeout)
    except PublishFailedError as exc:
        logger.warning("Publish failed, returning message to source: %s", exc)
        held.release()
        raise
    held.finalize()
