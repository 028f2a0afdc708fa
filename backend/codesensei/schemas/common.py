"""Shared response envelope."""
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Model serialized with camelCase keys; accepts either form on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Envelope(BaseModel, Generic[DataT]):
    """Standard response wrapper used by every endpoint."""

    status: Literal["success", "error"] = "success"
    data: DataT | None = None
    message: str | None = None
    details: Any | None = None
