"""RabbitMQ sender link publishing with broker confirmation."""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional

import pika
from pika.adapters.blocking_connection import BlockingChannel
from pika.exceptions import AMQPError, NackError, UnroutableError

from broker_service.adapters.rabbitmq.subscriber import RabbitDelivery
from broker_service.errors import BrokerError, PublishFailedError

logger = logging.getLogger(__name__)


def parse_destination(topic: str) -> tuple[str, str]:
    """
    Split a destination into (exchange, routing_key).

    Topic format: "queue_name" or "exchange_name:routing_key".
    A plain queue name publishes through the default exchange.
    """
    if ":" in topic:
        exchange, routing_key = topic.split(":", 1)
        return exchange, routing_key
    return "", topic


def _close_quietly(connection: pika.BlockingConnection) -> None:
    if connection.is_open:
        try:
            connection.close()
        except AMQPError as exc:
            logger.warning("Unable to close the publisher connection: %r", exc)


class RabbitMQPublisher:
    """
    Publishes copies of drained messages on a confirm-mode channel.

    Messages are published mandatory, so a destination with no bound queue
    is reported as a failure instead of being silently dropped.

    The publisher owns a dedicated connection that only its worker thread
    touches. A blocking channel waits for the confirm without a deadline, so
    send() waits on the worker instead; when the timeout passes, the
    connection is abandoned (closed once the stuck publish returns) and the
    next send opens a new one.
    """

    def __init__(self, connect: Callable[[], pika.BlockingConnection], topic: str):
        self._connect = connect
        self.exchange, self.routing_key = parse_destination(topic)
        self._connection: Optional[pika.BlockingConnection] = None
        self._channel: Optional[BlockingChannel] = None
        self._worker: Optional[ThreadPoolExecutor] = None
        self._open()

    def _open(self) -> None:
        connection = self._connect()
        try:
            channel = connection.channel()
            channel.confirm_delivery()
        except AMQPError:
            _close_quietly(connection)
            raise
        self._connection = connection
        self._channel = channel
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rabbitmq-publisher")

    def _publish(self, channel: BlockingChannel, raw: RabbitDelivery) -> None:
        channel.basic_publish(
            exchange=self.exchange,
            routing_key=self.routing_key,
            body=raw.body,
            properties=raw.properties,
            mandatory=True,
        )

    def _abandon(self) -> None:
        worker, connection = self._worker, self._connection
        self._worker = self._connection = self._channel = None
        # Queued behind the stuck publish; runs once it returns.
        worker.submit(_close_quietly, connection)
        worker.shutdown(wait=False)

    def send(self, raw: RabbitDelivery, timeout: float) -> None:
        """
        Publish raw's body and properties and wait up to timeout for the broker's ack.

        Raises:
            PublishFailedError: The broker nacked, could not route the message,
                or did not confirm it within timeout
        """
        message_id: Optional[str] = raw.properties.message_id
        if self._worker is None:
            try:
                self._open()
            except (AMQPError, BrokerError) as exc:
                raise PublishFailedError(message_id, f"Unable to reopen sender: {exc!r}") from exc

        future = self._worker.submit(self._publish, self._channel, raw)
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            logger.warning(
                "No confirm for %s from %s within %ss; abandoning the sender connection",
                message_id, self.routing_key, timeout,
            )
            self._abandon()
            raise PublishFailedError(message_id, "Timeout") from exc
        except UnroutableError as exc:
            raise PublishFailedError(message_id, f"Unroutable to {self.routing_key}") from exc
        except NackError as exc:
            raise PublishFailedError(message_id, "Nack") from exc
        except AMQPError as exc:
            raise PublishFailedError(message_id, repr(exc)) from exc

    def close(self) -> None:
        if self._worker is None:
            return
        worker, connection = self._worker, self._connection
        self._worker = self._connection = self._channel = None
        worker.submit(_close_quietly, connection)
        worker.shutdown(wait=True)
