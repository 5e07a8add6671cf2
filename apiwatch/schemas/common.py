"""
Response envelope shared by every endpoint.

    {"success": true, "data": {...}}
    {"success": true, "data": [...], "pagination": {"page": 1, "limit": 20, "total": 42, "total_pages": 3}}
    {"success": false, "error": {"code": "NOT_FOUND", "message": "Alert rule not found"}}
"""

import math
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if limit else 0,
        )


class ApiResponse(BaseModel, Generic[T]):
    """Uniform `{success, data?, error?}` envelope."""

    success: bool = True
    data: Optional[T] = None
    error: Optional[ErrorBody] = None


class PaginatedResponse(ApiResponse[list[T]], Generic[T]):
    """Envelope for list endpoints."""

    pagination: Pagination


class CountResult(BaseModel):
    """Result of bulk operations."""

    updated: int
