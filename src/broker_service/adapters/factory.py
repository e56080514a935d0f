"""Adapter construction from broker definitions."""

import logging
from typing import Callable

from broker_service.adapters.activemq import create_activemq_adapter
from broker_service.adapters.mock import MockAdapter
from broker_service.adapters.rabbitmq import create_rabbitmq_adapter
from broker_service.adapters.sqs import create_sqs_adapter
from broker_service.config import BrokerConfiguration, ServiceSettings
from broker_service.errors import BrokerError
from broker_service.protocols.adapter import BrokerAdapter

logger = logging.getLogger(__name__)

TEST_BROKER = "test"

AdapterFactory = Callable[[BrokerConfiguration, ServiceSettings], BrokerAdapter]

FACTORIES: dict[str, AdapterFactory] = {
    "amq": create_activemq_adapter,
    "rabbitmq": create_rabbitmq_adapter,
    "sqs": create_sqs_adapter,
}


def build_adapters(
    configs: list[BrokerConfiguration], settings: ServiceSettings
) -> dict[str, BrokerAdapter]:
    """
    Construct one adapter per broker definition, keyed by broker name.

    Unsupported types and adapters that fail to construct are logged and
    left out; the service still starts with the remaining brokers.
    """
    adapters: dict[str, BrokerAdapter] = {}
    for config in configs:
        factory = FACTORIES.get(config.type)
        if factory is None:
            logger.error("Broker type not supported: %r (broker %s)", config.type, config.name)
            continue
        try:
            adapters[config.name] = factory(config, settings)
        except BrokerError as exc:
            logger.error("Adapter error for broker %s: %s", config.name, exc)
            continue
        logger.info("Built %s adapter for broker %s", config.type, config.name)

    if settings.enable_test_broker:
        adapters.setdefault(TEST_BROKER, MockAdapter())
    return adapters
