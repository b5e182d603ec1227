"""
Shared schema base and the {success, data|message, ...} response envelopes.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DataResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ListResponse(BaseModel, Generic[T]):
    success: bool = True
    count: int
    data: list[T]


class PageResponse(BaseModel, Generic[T]):
    success: bool = True
    count: int
    total: int
    page: int
    pages: int
    data: list[T]


class MessageResponse(BaseModel):
    success: bool = True
    message: str
