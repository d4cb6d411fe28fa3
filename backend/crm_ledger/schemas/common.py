"""Common API response schemas."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Consistent JSON envelope for API responses."""

    data: T


class Page(BaseModel, Generic[T]):
    """Offset-paginated list payload."""

    items: list[T] = Field(default_factory=list)
    limit: int
    offset: int
