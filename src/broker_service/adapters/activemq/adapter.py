"""ActiveMQ adapter construction."""

from broker_service.adapters.activemq.console import ActiveMQConsole
from broker_service.adapters.activemq.transport import ProtonTransport
from broker_service.config import BrokerConfiguration, ServiceSettings
from broker_service.engine.fallback import split_endpoints
from broker_service.engine.operations import DrainingAdapter
from broker_service.management import ManagementClient


def create_activemq_adapter(config: BrokerConfiguration, settings: ServiceSettings) -> DrainingAdapter:
    """
    Build an ActiveMQ adapter from a broker definition.

    Keys: URL (comma-separated AMQP 1.0 endpoints), USER, PASS, CONSOLE_URL
    (comma-separated web console base URLs), CONSOLE_USER, CONSOLE_PASS.

    Raises:
        ConnectFailedError: No AMQP endpoint accepted a connection
    """
    console = ActiveMQConsole(
        ManagementClient(
            split_endpoints(config.get("CONSOLE_URL")),
            config.get("CONSOLE_USER"),
            config.get("CONSOLE_PASS"),
            timeout=settings.http_timeout,
        )
    )
    transport = ProtonTransport(
        split_endpoints(config.url),
        config.user,
        config.password,
        console,
        credit=settings.credit_window,
        timeout=settings.close_timeout,
    )
    return DrainingAdapter(
        config.name,
        transport,
        settings.drain_policy(),
        report_missing=settings.report_missing_single,
    )
