"""ActiveMQ adapter (AMQP 1.0 messages, web console counts)."""

from broker_service.adapters.activemq.adapter import create_activemq_adapter
from broker_service.adapters.activemq.console import ActiveMQConsole
from broker_service.adapters.activemq.transport import ProtonTransport

__all__ = ["ActiveMQConsole", "ProtonTransport", "create_activemq_adapter"]
