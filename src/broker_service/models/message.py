"""Transport-neutral message, queue and broker records."""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field

from broker_service.models.base import PascalCaseModel

UNKNOWN_BODY = "<unknown body structure>"


class StandardMessage(PascalCaseModel):
    """
    Read-only snapshot of a broker message.

    Headers are the union of transport headers, annotations and application
    properties; later sources overwrite earlier ones on key collision.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None, alias="MessageID")
    timestamp: Optional[datetime] = None
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""


class Queue(PascalCaseModel):
    """A broker queue as seen by the management surface at read time."""

    model_config = ConfigDict(frozen=True)

    name: str
    info: dict[str, str] = Field(default_factory=dict)


class Broker(PascalCaseModel):
    """A configured broker binding."""

    name: str


def decode_body(data: object) -> str:
    """Return a string form of a message body, or UNKNOWN_BODY."""
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        try:
            return bytes(data).decode("utf-8")
        except UnicodeDecodeError:
            return UNKNOWN_BODY
    return UNKNOWN_BODY
