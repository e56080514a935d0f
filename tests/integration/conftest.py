"""Fixtures for RabbitMQ integration tests."""

import subprocess
import time
import uuid

import pika
import pytest

from broker_service.adapters.rabbitmq import PikaTransport, RabbitMQManagement
from broker_service.engine.cursor import DrainPolicy
from broker_service.engine.operations import DrainingAdapter
from broker_service.management import ManagementClient

RABBITMQ_PORT = 5673  # Non-default ports to avoid conflicts
MANAGEMENT_PORT = 15673
AMQP_URL = f"amqp://localhost:{RABBITMQ_PORT}/%2F"
MANAGEMENT_URL = f"http://localhost:{MANAGEMENT_PORT}"


@pytest.fixture(scope="session")
def rabbitmq_container():
    """Start RabbitMQ Docker container for test session."""
    container_name = "broker-service-rabbitmq-test"

    # Clean up any existing container
    subprocess.run(["docker", "rm", "-f", container_name], capture_output=True)

    subprocess.run(
        [
            "docker",
            "run",
            "-d",
            "--name",
            container_name,
            "-p",
            f"{RABBITMQ_PORT}:5672",
            "-p",
            f"{MANAGEMENT_PORT}:15672",
            "rabbitmq:3-management",
        ],
        check=True,
        capture_output=True,
    )

    # Wait for RabbitMQ and the management plugin to be ready
    time.sleep(15)

    yield

    subprocess.run(["docker", "stop", container_name], capture_output=True)
    subprocess.run(["docker", "rm", container_name], capture_output=True)


@pytest.fixture(scope="session")
def rabbitmq_connection(rabbitmq_container) -> pika.BlockingConnection:
    """Provide a RabbitMQ connection for seeding and inspecting queues."""
    return pika.BlockingConnection(pika.ConnectionParameters(host="localhost", port=RABBITMQ_PORT))


@pytest.fixture
def test_queue(rabbitmq_connection) -> str:
    """Create a unique test queue and clean up after test."""
    queue_name = f"test-queue-{uuid.uuid4()}"
    channel = rabbitmq_connection.channel()
    channel.queue_declare(queue=queue_name, durable=True)

    yield queue_name

    channel.queue_delete(queue=queue_name)


@pytest.fixture
def destination_queue(rabbitmq_connection) -> str:
    """Create a second unique queue for moves."""
    queue_name = f"test-destination-{uuid.uuid4()}"
    channel = rabbitmq_connection.channel()
    channel.queue_declare(queue=queue_name, durable=True)

    yield queue_name

    channel.queue_delete(queue=queue_name)


@pytest.fixture
def adapter(rabbitmq_container) -> DrainingAdapter:
    """Provide a DrainingAdapter over a PikaTransport."""
    management = RabbitMQManagement(ManagementClient([MANAGEMENT_URL], "guest", "guest"))
    transport = PikaTransport([AMQP_URL], "guest", "guest", management)
    adapter = DrainingAdapter("integration", transport, DrainPolicy(receive_timeout=0.5))

    yield adapter

    adapter.close()
