"""Request models for multi-message operations."""

from pydantic import BaseModel, ConfigDict, Field


class MessageIDsRequest(BaseModel):
    """Body of the delete-many and move-many requests."""

    model_config = ConfigDict(populate_by_name=True)

    message_ids: list[str] = Field(alias="messageIDs")
