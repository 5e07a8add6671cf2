"""
Envelope helpers and exception handlers.

Success:  {"success": true, "data": ...[, "pagination": {...}]}
Failure:  {"success": false, "error": {"code", "message", "details"?}}
"""

import logging
from typing import Any, Iterable, Optional, TypeVar

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from apiwatch.core.exceptions import ApiwatchError
from apiwatch.schemas.common import PaginatedResponse, Pagination

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def paginated(
    items: Iterable[Any],
    schema: type[M],
    page: int,
    limit: int,
    total: int,
) -> PaginatedResponse[M]:
    """Wrap ORM rows into a paginated envelope."""
    return PaginatedResponse[schema](
        data=[schema.model_validate(item) for item in items],
        pagination=Pagination.build(page, limit, total),
    )


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================


async def apiwatch_error_handler(request: Request, exc: ApiwatchError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error_response(exc.status_code, exc.code, exc.message, exc.details, headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "VALIDATION_ERROR",
        "Request validation failed",
        details,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(
        exc.status_code,
        HTTP_ERROR_CODES.get(exc.status_code, "ERROR"),
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "Internal server error",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiwatchError, apiwatch_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
