"""AMQP 1.0 transport for ActiveMQ using the Qpid Proton blocking API."""

import logging
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional, TypeVar

from proton import ConnectionException, Delivery, Message, ProtonException, Timeout
from proton.handlers import MessagingHandler
from proton.utils import BlockingConnection, SendException

from broker_service.adapters.activemq.console import ActiveMQConsole
from broker_service.engine.fallback import first_success
from broker_service.errors import (
    ConnectFailedError,
    PublishFailedError,
    ReceiveError,
    SessionError,
    SettleError,
)
from broker_service.models.message import Queue, StandardMessage, decode_body

logger = logging.getLogger(__name__)

T = TypeVar("T")

CREDIT_WINDOW = 10
CLOSE_TIMEOUT = 10.0


@dataclass
class ProtonDelivery:
    """A received message together with its unsettled delivery."""

    message: Message
    delivery: Delivery


class _DeliveryBuffer(MessagingHandler):
    """Collects incoming deliveries unsettled so they can be settled in any order."""

    def __init__(self):
        super().__init__(prefetch=0, auto_accept=False)
        self.pending: deque[ProtonDelivery] = deque()

    def on_message(self, event):
        self.pending.append(ProtonDelivery(event.message, event.delivery))


class ProtonReceiver:
    """Receiver link with a bounded credit window."""

    def __init__(self, connection: BlockingConnection, queue: str, credit: int = CREDIT_WINDOW):
        self._connection = connection
        self._queue = queue
        self._credit = credit
        self._buffer = _DeliveryBuffer()
        self._receiver = connection.create_receiver(queue, credit=credit, handler=self._buffer)

    def receive(self, timeout: float) -> Optional[ProtonDelivery]:
        if not self._buffer.pending:
            link = self._receiver.link
            if link.credit == 0:
                link.flow(self._credit)
            try:
                self._connection.wait(
                    lambda: bool(self._buffer.pending),
                    timeout=timeout,
                    msg=f"Receiving on {self._queue}",
                )
            except Timeout:
                return None
            except ProtonException as exc:
                raise ReceiveError(f"receive on {self._queue} failed: {exc}") from exc
        return self._buffer.pending.popleft()

    def accept(self, raw: ProtonDelivery) -> None:
        self._settle(raw, Delivery.ACCEPTED)

    def release(self, raw: ProtonDelivery) -> None:
        self._settle(raw, Delivery.RELEASED)

    def _settle(self, raw: ProtonDelivery, state) -> None:
        try:
            raw.delivery.update(state)
            raw.delivery.settle()
        except ProtonException as exc:
            raise SettleError(f"unable to settle message {raw.message.id}: {exc}") from exc

    def close(self) -> None:
        # Deliveries still buffered here were never handed out; give them back.
        while self._buffer.pending:
            self.release(self._buffer.pending.popleft())
        self._receiver.close()


class ProtonSender:
    """Sender link that waits for the broker to settle each message."""

    def __init__(self, connection: BlockingConnection, queue: str):
        self._queue = queue
        self._sender = connection.create_sender(queue)

    def send(self, raw: ProtonDelivery, timeout: float) -> None:
        message = republished(raw.message)
        try:
            self._sender.send(message, timeout=timeout)
        except Timeout as exc:
            raise PublishFailedError(message.id, "Timeout") from exc
        except SendException as exc:
            raise PublishFailedError(message.id, f"Nack: {exc.state}") from exc
        except ProtonException as exc:
            raise PublishFailedError(message.id, str(exc)) from exc

    def close(self) -> None:
        self._sender.close()


def republished(original: Message) -> Message:
    """Build a new durable message carrying the original's identity and content."""
    return Message(
        id=original.id,
        correlation_id=original.correlation_id,
        body=original.body,
        properties=dict(original.properties) if original.properties else None,
        annotations=dict(original.annotations) if original.annotations else None,
        content_type=original.content_type,
        subject=original.subject,
        priority=original.priority,
        creation_time=original.creation_time,
        durable=True,
    )


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def project(message: Message) -> StandardMessage:
    """Map a Proton message onto a StandardMessage."""
    fields = {
        "Correlation ID": message.correlation_id,
        "Durable": message.durable,
        "Priority": message.priority,
        "TTL": message.ttl,
        "First Acquirer": message.first_acquirer,
        "Delivery Count": message.delivery_count,
        "User ID": message.user_id,
        "Destination": message.address,
        "Subject": message.subject,
        "Reply To": message.reply_to,
        "Type": message.content_type,
        "Group ID": message.group_id,
        "Group Sequence": message.group_sequence,
    }
    headers = {key: _text(value) for key, value in fields.items() if value is not None}
    for source in (message.properties, message.annotations, message.instructions):
        for key, value in (source or {}).items():
            headers[_text(key)] = _text(value)

    timestamp = None
    if message.creation_time:
        timestamp = datetime.fromtimestamp(message.creation_time, tz=timezone.utc)

    return StandardMessage(
        id=None if message.id is None else _text(message.id),
        timestamp=timestamp,
        headers=headers,
        body=decode_body(message.body),
    )


def connect(
    urls: list[str], username: str, password: str, timeout: float = CLOSE_TIMEOUT
) -> BlockingConnection:
    """
    Connect to the first AMQP 1.0 endpoint that accepts a session.

    amqps:// URLs negotiate TLS; credentials use SASL PLAIN.

    Raises:
        ConnectFailedError: No endpoint accepted the connection
    """

    def attempt(url: str) -> BlockingConnection:
        options: dict[str, Any] = {}
        if username:
            options.update(user=username, password=password, allowed_mechs="PLAIN")
        if url.startswith("amqps:"):
            logger.info("Connecting to %s using TLS", url)
        connection = BlockingConnection(url, timeout=timeout, **options)
        logger.info("Connected to AMQP 1.0 broker %s", url)
        return connection

    return first_success(
        urls,
        attempt,
        retry_on=(ProtonException, OSError),
        error=ConnectFailedError,
        what="AMQP 1.0 broker",
    )


class ProtonTransport:
    """
    ActiveMQ transport: AMQP 1.0 for messages, the web console for counts.

    Released messages go back to the broker's dispatch queue rather than the
    receiver's buffer, so single-item operations may settle as they scan.

    The connection is opened against the first reachable URL and re-opened
    when a link cannot be attached because the broker dropped it.
    """

    supports_early_release = True

    def __init__(
        self,
        urls: list[str],
        username: str,
        password: str,
        console: ActiveMQConsole,
        *,
        credit: int = CREDIT_WINDOW,
        timeout: float = CLOSE_TIMEOUT,
    ):
        self.urls = urls
        self.console = console
        self.credit = credit
        self._username = username
        self._password = password
        self._timeout = timeout
        self._connection = connect(urls, username, password, timeout=timeout)

    @property
    def connection(self) -> BlockingConnection:
        """The shared connection, re-established if the broker dropped it."""
        if self._connection.disconnected:
            logger.warning("AMQP 1.0 connection lost; reconnecting")
            self._connection = connect(self.urls, self._username, self._password, timeout=self._timeout)
        return self._connection

    def _reconnect(self) -> None:
        stale = self._connection
        if not stale.disconnected:
            try:
                stale.close()
            except ProtonException as exc:
                logger.debug("Stale AMQP 1.0 connection did not close cleanly: %s", exc)
        self._connection = connect(self.urls, self._username, self._password, timeout=self._timeout)

    def _attach(self, open_link: Callable[[BlockingConnection], T], queue: str) -> T:
        """Attach a link, reconnecting once if the connection itself has failed."""
        try:
            return open_link(self.connection)
        except ConnectionException as exc:
            logger.warning("AMQP 1.0 connection unusable (%s); reconnecting", exc)
        self._reconnect()
        try:
            return open_link(self._connection)
        except ProtonException as exc:
            raise SessionError(f"unable to attach a link to {queue}: {exc}") from exc

    @contextmanager
    def open_receiver(self, queue: str) -> Iterator[ProtonReceiver]:
        try:
            receiver = self._attach(lambda connection: ProtonReceiver(connection, queue, self.credit), queue)
        except ProtonException as exc:
            raise SessionError(f"unable to attach receiver to {queue}: {exc}") from exc
        try:
            yield receiver
        finally:
            try:
                receiver.close()
            except (ProtonException, SettleError) as exc:
                logger.warning("Unable to close the receiver on %s: %s", queue, exc)

    @contextmanager
    def open_sender(self, queue: str) -> Iterator[ProtonSender]:
        try:
            sender = self._attach(lambda connection: ProtonSender(connection, queue), queue)
        except ProtonException as exc:
            raise SessionError(f"unable to attach sender to {queue}: {exc}") from exc
        try:
            yield sender
        finally:
            try:
                sender.close()
            except ProtonException as exc:
                logger.warning("Unable to close the sender on %s: %s", queue, exc)

    def message_id(self, raw: ProtonDelivery) -> Optional[str]:
        message_id = raw.message.id
        return message_id if isinstance(message_id, str) else None

    def project(self, raw: ProtonDelivery) -> StandardMessage:
        return project(raw.message)

    def census(self, queue: str) -> int:
        return self.console.queue_size(queue)

    def list_queues(self) -> list[Queue]:
        return self.console.list_queues()

    def close(self) -> None:
        # A dropped connection has already released its resources.
        if not self._connection.disconnected:
            try:
                self._connection.close()
            except ProtonException as exc:
                logger.warning("Unable to close the AMQP 1.0 connection: %s", exc)
        self.console.close()
