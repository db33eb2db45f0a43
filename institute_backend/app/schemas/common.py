from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every endpoint: {success: true, data: ...}."""

    success: bool = True
    data: T


class Pagination(BaseModel):
    page: int
    pageSize: int
    total: int
    totalPages: int


class MessageOut(BaseModel):
    message: str
