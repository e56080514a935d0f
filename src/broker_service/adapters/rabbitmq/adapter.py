"""RabbitMQ adapter construction."""

from broker_service.adapters.rabbitmq.management import RabbitMQManagement
from broker_service.adapters.rabbitmq.transport import PikaTransport
from broker_service.config import BrokerConfiguration, ServiceSettings
from broker_service.engine.fallback import split_endpoints
from broker_service.engine.operations import DrainingAdapter
from broker_service.management import ManagementClient


def create_rabbitmq_adapter(config: BrokerConfiguration, settings: ServiceSettings) -> DrainingAdapter:
    """
    Build a RabbitMQ adapter from a broker definition.

    Keys: URL (comma-separated AMQP 0-9-1 endpoints), USER, PASS,
    CONSOLE_URL (comma-separated management API base URLs, same
    credentials), HOST (virtual host, default "/").

    Raises:
        ConnectFailedError: No AMQP endpoint accepted a connection
    """
    virtual_host = config.get("HOST") or "/"
    management = RabbitMQManagement(
        ManagementClient(
            split_endpoints(config.get("CONSOLE_URL")),
            config.user,
            config.password,
            timeout=settings.http_timeout,
        ),
        virtual_host,
    )
    transport = PikaTransport(
        split_endpoints(config.url),
        config.user,
        config.password,
        management,
        virtual_host=virtual_host,
        blocked_connection_timeout=settings.publish_timeout,
        socket_timeout=settings.close_timeout,
    )
    return DrainingAdapter(
        config.name,
        transport,
        settings.drain_policy(),
        report_missing=settings.report_missing_single,
    )
