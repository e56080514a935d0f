"""Broker lookup and per-request cancellation for the HTTP surface."""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from broker_service.models.message import Broker
from broker_service.protocols.adapter import BrokerAdapter

logger = logging.getLogger(__name__)


class UnknownBrokerError(LookupError):
    """No adapter is bound to the requested broker name."""

    def __init__(self, broker_id: str):
        self.broker_id = broker_id
        super().__init__(f"No connection found for {broker_id}")


class BrokerAdapterManager:
    """Maps broker names to adapters for the request handlers."""

    def __init__(self, adapters: dict[str, BrokerAdapter], operation_timeout: float = 300.0):
        self.adapters = adapters
        self.operation_timeout = operation_timeout

    def brokers(self) -> list[Broker]:
        return [Broker(name=name) for name in sorted(self.adapters)]

    def adapter(self, broker_id: str) -> BrokerAdapter:
        try:
            return self.adapters[broker_id]
        except KeyError:
            raise UnknownBrokerError(broker_id) from None

    @contextmanager
    def cancellation(self) -> Iterator[threading.Event]:
        """Yield an event that is set once the operation timeout elapses."""
        cancel = threading.Event()
        timer = threading.Timer(self.operation_timeout, cancel.set)
        timer.daemon = True
        timer.start()
        try:
            yield cancel
        finally:
            timer.cancel()

    def close(self) -> None:
        for name, adapter in self.adapters.items():
            logger.info("Closing adapter %s", name)
            adapter.close()
