"""RabbitMQ receiver link holding unacknowledged deliveries."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import pika
from pika.adapters.blocking_connection import BlockingChannel
from pika.exceptions import AMQPError

from broker_service.errors import ReceiveError, SettleError

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


@dataclass
class RabbitDelivery:
    """A message fetched with basic_get and not yet acknowledged."""

    delivery_tag: int
    properties: pika.BasicProperties
    body: bytes
    exchange: str = ""
    routing_key: str = ""
    redelivered: bool = False


class RabbitMQSubscriber:
    """
    Pulls messages one at a time with basic_get and manual acknowledgement.

    basic_get is not limited by the channel prefetch, so every drained
    message can stay unacknowledged until the operation settles it. Messages
    still unacknowledged when the channel closes are requeued by the broker.
    """

    def __init__(self, connection: pika.BlockingConnection, queue: str):
        self._connection = connection
        self._queue = queue
        self._channel: BlockingChannel = connection.channel()

    def receive(self, timeout: float) -> Optional[RabbitDelivery]:
        """
        Poll the queue until a message arrives or the timeout elapses.

        Args:
            timeout: Seconds to keep polling an empty queue

        Returns:
            RabbitDelivery, or None when the queue stayed empty
        """
        deadline = time.monotonic() + timeout
        while True:
            try:
                method, properties, body = self._channel.basic_get(
                    queue=self._queue, auto_ack=False
                )
            except AMQPError as exc:
                raise ReceiveError(f"basic_get on {self._queue} failed: {exc!r}") from exc

            if method is not None:
                return RabbitDelivery(
                    delivery_tag=method.delivery_tag,
                    properties=properties,
                    body=body,
                    exchange=method.exchange,
                    routing_key=method.routing_key,
                    redelivered=method.redelivered,
                )

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            self._connection.sleep(min(POLL_INTERVAL, remaining))

    def accept(self, raw: RabbitDelivery) -> None:
        try:
            self._channel.basic_ack(delivery_tag=raw.delivery_tag)
        except AMQPError as exc:
            raise SettleError(f"basic_ack of {raw.delivery_tag} failed: {exc!r}") from exc

    def release(self, raw: RabbitDelivery) -> None:
        try:
            self._channel.basic_nack(delivery_tag=raw.delivery_tag, requeue=True)
        except AMQPError as exc:
            raise SettleError(f"basic_nack of {raw.delivery_tag} failed: {exc!r}") from exc

    def close(self) -> None:
        if self._channel.is_open:
            self._channel.close()
