"""Amazon SQS adapter: read-only polling, no move or delete support."""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import unquote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from broker_service.config import BrokerConfiguration, ServiceSettings
from broker_service.errors import (
    BrokerError,
    CapabilityNotImplementedError,
    ConnectFailedError,
    ManagementUnavailableError,
    ReceiveError,
)
from broker_service.models.message import Queue, StandardMessage

logger = logging.getLogger(__name__)

BACKEND = "SQS"
BATCH_SIZE = 10
WAIT_TIME_SECONDS = 3
VISIBILITY_TIMEOUT = 20


def project(raw: dict[str, Any]) -> StandardMessage:
    """Map an SQS message dict onto a StandardMessage."""
    attributes = raw.get("Attributes", {})
    headers = {key: str(value) for key, value in attributes.items()}
    for key, value in raw.get("MessageAttributes", {}).items():
        if "StringValue" in value:
            headers[key] = value["StringValue"]
        else:
            headers[key] = str(value.get("BinaryValue", ""))

    timestamp = None
    sent = attributes.get("SentTimestamp")
    if sent and sent.isdigit():
        timestamp = datetime.fromtimestamp(int(sent) / 1000, tz=timezone.utc)

    return StandardMessage(
        id=raw.get("MessageId"),
        timestamp=timestamp,
        headers=headers,
        body=raw.get("Body", ""),
    )


class SQSAdapter:
    """
    Poll wrapper over an SQS client.

    Queues are addressed by URL (URL-encoded when passed through a path).
    Received messages are never deleted: they become visible again when the
    visibility timeout expires.
    """

    def __init__(self, name: str, client: Any, enumeration_limit: int = 50_000):
        self.name = name
        self._client = client
        self.enumeration_limit = enumeration_limit

    def get_all_messages(
        self, queue: str, *, cancel: Optional[threading.Event] = None
    ) -> list[StandardMessage]:
        queue_url = unquote(queue)
        messages: dict[str, StandardMessage] = {}

        while len(messages) < self.enumeration_limit:
            if cancel is not None and cancel.is_set():
                logger.info("Polling %s cancelled after %d messages", queue_url, len(messages))
                break
            try:
                response = self._client.receive_message(
                    QueueUrl=queue_url,
                    AttributeNames=["SentTimestamp"],
                    MessageAttributeNames=["All"],
                    MaxNumberOfMessages=BATCH_SIZE,
                    WaitTimeSeconds=WAIT_TIME_SECONDS,
                    VisibilityTimeout=VISIBILITY_TIMEOUT,
                )
            except (BotoCoreError, ClientError) as exc:
                raise ReceiveError(f"receive from {queue_url} failed: {exc}") from exc

            batch = response.get("Messages", [])
            fresh = [raw for raw in batch if raw["MessageId"] not in messages]
            if not fresh:
                break
            for raw in fresh:
                messages[raw["MessageId"]] = project(raw)

        logger.info("Listed %d messages from %s", len(messages), queue_url)
        return list(messages.values())

    def get_all_queues(self) -> list[Queue]:
        try:
            pages = self._client.get_paginator("list_queues").paginate()
            urls = [url for page in pages for url in page.get("QueueUrls", [])]
        except (BotoCoreError, ClientError) as exc:
            raise ManagementUnavailableError(f"unable to list SQS queues: {exc}") from exc
        return [Queue(name=url) for url in urls if url]

    def purge(self, queue: str, *, cancel: Optional[threading.Event] = None) -> None:
        raise CapabilityNotImplementedError("Purge", BACKEND)

    def delete_one(
        self, queue: str, message_id: str, *, cancel: Optional[threading.Event] = None
    ) -> None:
        raise CapabilityNotImplementedError("DeleteOne", BACKEND)

    def delete_many(
        self, queue: str, message_ids: list[str], *, cancel: Optional[threading.Event] = None
    ) -> list[BrokerError]:
        return [CapabilityNotImplementedError("DeleteMany", BACKEND)]

    def move_one(
        self,
        source: str,
        destination: str,
        message_id: str,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        raise CapabilityNotImplementedError("MoveOne", BACKEND)

    def move(
        self,
        source: str,
        destination: str,
        message_ids: list[str],
        *,
        cancel: Optional[threading.Event] = None,
    ) -> list[BrokerError]:
        return [CapabilityNotImplementedError("Move", BACKEND)]

    def close(self) -> None:
        self._client.close()


def create_sqs_adapter(config: BrokerConfiguration, settings: ServiceSettings) -> SQSAdapter:
    """
    Build an SQS adapter from a broker definition.

    Keys: REGION, ACCESS_KEY, SECRET_KEY.

    Raises:
        ConnectFailedError: The client could not be created
    """
    try:
        client = boto3.client(
            "sqs",
            region_name=config.get("REGION") or None,
            aws_access_key_id=config.get("ACCESS_KEY") or None,
            aws_secret_access_key=config.get("SECRET_KEY") or None,
        )
    except BotoCoreError as exc:
        raise ConnectFailedError(f"unable to create SQS client: {exc}") from exc
    return SQSAdapter(config.name, client, settings.enumeration_limit)
