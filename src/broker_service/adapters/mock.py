"""In-process adapter backing the built-in "test" broker."""

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from broker_service.errors import BrokerError
from broker_service.models.message import Queue, StandardMessage


class MockAdapter:
    """Serves canned queues and messages; every mutation succeeds without effect."""

    def get_all_messages(
        self, queue: str, *, cancel: Optional[threading.Event] = None
    ) -> list[StandardMessage]:
        now = datetime.now(timezone.utc)
        return [
            StandardMessage(
                id=str(uuid.uuid4()),
                timestamp=now,
                headers={"blah": "blah", "blahblah": "blahblah"},
                body="Hello this is a very important message. Please don't ignore it",
            ),
            StandardMessage(
                id=str(uuid.uuid4()),
                timestamp=now - timedelta(hours=48),
                headers={"blah1": "blah1", "blahblah1": "blahblah1"},
                body="Hello this is another very important message. Please don't ignore it",
            ),
        ]

    def get_all_queues(self) -> list[Queue]:
        return [
            Queue(name="test_queue_1", info={"Size": "2"}),
            Queue(name="test_queue_2", info={"Size": "2"}),
        ]

    def purge(self, queue: str, *, cancel: Optional[threading.Event] = None) -> None:
        return None

    def delete_one(
        self, queue: str, message_id: str, *, cancel: Optional[threading.Event] = None
    ) -> None:
        return None

    def delete_many(
        self, queue: str, message_ids: list[str], *, cancel: Optional[threading.Event] = None
    ) -> list[BrokerError]:
        return []

    def move_one(
        self,
        source: str,
        destination: str,
        message_id: str,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        return None

    def move(
        self,
        source: str,
        destination: str,
        message_ids: list[str],
        *,
        cancel: Optional[threading.Event] = None,
    ) -> list[BrokerError]:
        return []

    def close(self) -> None:
        return None
