"""Base models for the upstream JSON representation."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_pascal


class PascalCaseModel(BaseModel):
    """Base model that uses PascalCase for field aliases to match the broker UI payloads."""

    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
    )
