"""RabbitMQ adapter (AMQP 0-9-1 messages, management API counts)."""

from broker_service.adapters.rabbitmq.adapter import create_rabbitmq_adapter
from broker_service.adapters.rabbitmq.management import RabbitMQManagement
from broker_service.adapters.rabbitmq.publisher import RabbitMQPublisher
from broker_service.adapters.rabbitmq.subscriber import RabbitMQSubscriber
from broker_service.adapters.rabbitmq.transport import PikaTransport

__all__ = [
    "PikaTransport",
    "RabbitMQManagement",
    "RabbitMQPublisher",
    "RabbitMQSubscriber",
    "create_rabbitmq_adapter",
]
