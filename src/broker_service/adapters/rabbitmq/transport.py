"""AMQP 0-9-1 transport for RabbitMQ using pika."""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, TypeVar

import pika
from pika.exceptions import AMQPConnectionError, AMQPError

from broker_service.adapters.rabbitmq.management import RabbitMQManagement
from broker_service.adapters.rabbitmq.publisher import RabbitMQPublisher
from broker_service.adapters.rabbitmq.subscriber import RabbitDelivery, RabbitMQSubscriber
from broker_service.engine.fallback import first_success
from broker_service.errors import ConnectFailedError, SessionError
from broker_service.models.message import Queue, StandardMessage, decode_body

logger = logging.getLogger(__name__)

T = TypeVar("T")

ID_HEADERS = ("messageID", "MessageID")


def _text(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def message_id(raw: RabbitDelivery) -> Optional[str]:
    """Return the message_id property, else a messageID header, when it is a string."""
    if isinstance(raw.properties.message_id, str):
        return raw.properties.message_id
    headers = raw.properties.headers or {}
    for key in ID_HEADERS:
        value = headers.get(key)
        if isinstance(value, str):
            return value
    return None


def project(raw: RabbitDelivery) -> StandardMessage:
    """Map a RabbitMQ delivery onto a StandardMessage."""
    properties = raw.properties
    fields = {
        "Correlation ID": properties.correlation_id,
        "Content Type": properties.content_type,
        "Delivery Mode": properties.delivery_mode,
        "Priority": properties.priority,
        "Reply To": properties.reply_to,
        "Expiration": properties.expiration,
        "Type": properties.type,
        "User ID": properties.user_id,
        "App ID": properties.app_id,
        "Exchange": raw.exchange or None,
        "Routing Key": raw.routing_key or None,
        "Redelivered": raw.redelivered,
    }
    headers = {key: _text(value) for key, value in fields.items() if value is not None}
    for key, value in (properties.headers or {}).items():
        headers[key] = _text(value)

    timestamp = None
    if properties.timestamp:
        timestamp = datetime.fromtimestamp(properties.timestamp, tz=timezone.utc)

    return StandardMessage(
        id=message_id(raw),
        timestamp=timestamp,
        headers=headers,
        body=decode_body(raw.body),
    )


class PikaTransport:
    """
    RabbitMQ transport: AMQP 0-9-1 for messages, the management API for counts.

    A nacked message is requeued at the head of its queue and would be
    fetched again by the same drain, so every decision waits until the
    drain is complete (no early release).
    """

    supports_early_release = False

    def __init__(
        self,
        urls: list[str],
        username: str,
        password: str,
        management: RabbitMQManagement,
        *,
        virtual_host: Optional[str] = None,
        blocked_connection_timeout: float = 30.0,
        socket_timeout: float = 10.0,
    ):
        self.urls = urls
        self.management = management
        self._credentials = pika.PlainCredentials(username, password)
        self._virtual_host = virtual_host
        self._blocked_connection_timeout = blocked_connection_timeout
        self._socket_timeout = socket_timeout
        self._connection = self._connect()

    def _parameters(self, url: str) -> pika.URLParameters:
        parameters = pika.URLParameters(url)
        parameters.credentials = self._credentials
        if self._virtual_host:
            parameters.virtual_host = self._virtual_host
        parameters.blocked_connection_timeout = self._blocked_connection_timeout
        parameters.socket_timeout = self._socket_timeout
        return parameters

    def _connect(self) -> pika.BlockingConnection:
        def attempt(url: str) -> pika.BlockingConnection:
            connection = pika.BlockingConnection(self._parameters(url))
            logger.info("Connected to AMQP 0-9-1 broker %s", url)
            return connection

        return first_success(
            self.urls,
            attempt,
            retry_on=(AMQPError, OSError),
            error=ConnectFailedError,
            what="AMQP 0-9-1 broker",
        )

    @property
    def connection(self) -> pika.BlockingConnection:
        """The shared connection, re-established if the broker dropped it."""
        if self._connection.is_closed:
            logger.warning("AMQP 0-9-1 connection lost; reconnecting")
            self._connection = self._connect()
        return self._connection

    def _reconnect(self) -> None:
        stale = self._connection
        if stale.is_open:
            try:
                stale.close()
            except AMQPError as exc:
                logger.debug("Stale AMQP 0-9-1 connection did not close cleanly: %r", exc)
        self._connection = self._connect()

    def _open_channel(self, open_link: Callable[[pika.BlockingConnection], T], queue: str) -> T:
        """
        Open a link on the shared connection, reconnecting once if the connection is dead.

        An idle connection can be dropped by the broker without the client
        noticing until the next frame it sends.
        """
        try:
            return open_link(self.connection)
        except AMQPConnectionError as exc:
            logger.warning("AMQP 0-9-1 connection unusable (%r); reconnecting", exc)
        self._reconnect()
        try:
            return open_link(self._connection)
        except AMQPError as exc:
            raise SessionError(f"unable to open a channel for {queue}: {exc!r}") from exc

    @contextmanager
    def open_receiver(self, queue: str) -> Iterator[RabbitMQSubscriber]:
        try:
            receiver = self._open_channel(lambda connection: RabbitMQSubscriber(connection, queue), queue)
        except AMQPError as exc:
            raise SessionError(f"unable to open a channel for {queue}: {exc!r}") from exc
        try:
            yield receiver
        finally:
            try:
                receiver.close()
            except AMQPError as exc:
                logger.warning("Unable to close the receiver channel on %s: %r", queue, exc)

    @contextmanager
    def open_sender(self, queue: str) -> Iterator[RabbitMQPublisher]:
        try:
            sender = RabbitMQPublisher(self._connect, queue)
        except AMQPError as exc:
            raise SessionError(f"unable to open a confirm channel for {queue}: {exc!r}") from exc
        except ConnectFailedError as exc:
            raise SessionError(f"unable to connect a sender for {queue}: {exc}") from exc
        try:
            yield sender
        finally:
            sender.close()

    def message_id(self, raw: RabbitDelivery) -> Optional[str]:
        return message_id(raw)

    def project(self, raw: RabbitDelivery) -> StandardMessage:
        return project(raw)

    def census(self, queue: str) -> int:
        return self.management.queue_size(queue)

    def list_queues(self) -> list[Queue]:
        return self.management.list_queues()

    def close(self) -> None:
        if self._connection.is_open:
            try:
                self._connection.close()
            except AMQPError as exc:
                logger.warning("Unable to close the AMQP 0-9-1 connection: %r", exc)
        self.management.close()
