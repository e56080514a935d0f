"""Tests for message, queue and request models and the error taxonomy."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from broker_service.errors import (
    BrokerError,
    CapabilityNotImplementedError,
    MessageNotFoundError,
    PublishFailedError,
)
from broker_service.models.message import UNKNOWN_BODY, Queue, StandardMessage, decode_body
from broker_service.models.request import MessageIDsRequest


class TestStandardMessage:
    """Test StandardMessage model."""

    def test_serializes_to_pascal_case(self):
        """StandardMessage should serialize with the upstream field names."""
        message = StandardMessage(
            id="m1",
            timestamp=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            headers={"Correlation ID": "c1"},
            body="hello",
        )

        data = message.model_dump(by_alias=True, mode="json")

        assert data == {
            "MessageID": "m1",
            "Timestamp": "2024-01-02T03:04:05Z",
            "Headers": {"Correlation ID": "c1"},
            "Body": "hello",
        }

    def test_defaults(self):
        """A message with nothing known has no ID, no timestamp and an empty body."""
        message = StandardMessage()

        assert message.id is None
        assert message.timestamp is None
        assert message.headers == {}
        assert message.body == ""

    def test_parses_from_upstream_json(self):
        """StandardMessage should parse from the upstream representation."""
        message = StandardMessage.model_validate_json('{"MessageID": "m1", "Body": "x"}')

        assert message.id == "m1"
        assert message.body == "x"

    def test_is_read_only(self):
        """Snapshots cannot be modified."""
        message = StandardMessage(id="m1")

        with pytest.raises(ValidationError):
            message.body = "changed"


class TestQueue:
    """Test Queue model."""

    def test_serializes_to_pascal_case(self):
        """Queue should serialize as Name and Info."""
        queue = Queue(name="orders", info={"Size": "3"})

        assert queue.model_dump(by_alias=True) == {"Name": "orders", "Info": {"Size": "3"}}


class TestDecodeBody:
    """Test decode_body()."""

    def test_text_passes_through(self):
        assert decode_body("hello") == "hello"

    def test_utf8_bytes_are_decoded(self):
        assert decode_body("héllo".encode()) == "héllo"

    def test_invalid_utf8_is_unknown(self):
        assert decode_body(b"\xff") == UNKNOWN_BODY

    def test_other_types_are_unknown(self):
        assert decode_body({"a": 1}) == UNKNOWN_BODY
        assert decode_body(None) == UNKNOWN_BODY


class TestMessageIDsRequest:
    """Test MessageIDsRequest model."""

    def test_parses_message_ids(self):
        """The request body uses the messageIDs key."""
        request = MessageIDsRequest.model_validate_json('{"messageIDs": ["m1", "m2"]}')

        assert request.message_ids == ["m1", "m2"]

    def test_missing_ids_rejected(self):
        """A body without messageIDs is invalid."""
        with pytest.raises(ValidationError):
            MessageIDsRequest.model_validate({})


class TestErrors:
    """Test the error taxonomy."""

    def test_not_found_message(self):
        """MessageNotFoundError should name the ID and queue."""
        error = MessageNotFoundError("m4", "Q")

        assert isinstance(error, BrokerError)
        assert str(error) == "Did not find message m4 in Q"

    def test_publish_failed_message(self):
        """PublishFailedError should carry the ID and the reason."""
        error = PublishFailedError("m1", "Nack")

        assert str(error) == "Message ID: m1; Nack"
        assert error.reason == "Nack"

    def test_capability_error_is_not_implemented(self):
        """CapabilityNotImplementedError is also a NotImplementedError."""
        error = CapabilityNotImplementedError("Purge", "SQS")

        assert isinstance(error, NotImplementedError)
        assert str(error) == "Purge is not implemented for SQS"
