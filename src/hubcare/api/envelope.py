"""Uniform response envelope.

Success: {"status": true, "message": ..., "data": ...}
Failure: {"status": false, "message": ..., "error": ...}
"""

from __future__ import annotations

import math
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hubcare.domain.errors import DomainError, ExternalServiceError
from hubcare.observability.logging import get_logger
from hubcare.observability.redaction import safe_log_context

logger = get_logger(__name__)


def ok(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    body: dict[str, Any] = {"status": True, "message": message}
    if data is not None:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def fail(status_code: int, message: str, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": False, "message": message, "error": error},
    )


def pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "totalCount": total,
        "limit": limit,
    }


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "header")]
    field = ".".join(loc)
    msg = first.get("msg", "Invalid value")
    return f"{field}: {msg}" if field else msg


def install_exception_handlers(app: FastAPI) -> None:
    """Render every failure as the uniform envelope."""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        log = logger.warning if isinstance(exc, ExternalServiceError) else logger.info
        log(
            "request rejected",
            extra={
                "extra_fields": safe_log_context(
                    path=request.url.path,
                    error=exc.code,
                    status_code=exc.status_code,
                )
            },
        )
        return fail(exc.status_code, exc.message, exc.code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        response = fail(exc.status_code, message, f"HTTP_{exc.status_code}")
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return fail(400, _validation_message(exc), "VALIDATION_ERROR")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled error",
            exc_info=exc,
            extra={
                "extra_fields": safe_log_context(
                    path=request.url.path, error_type=type(exc).__name__
                )
            },
        )
        return fail(500, "Internal server error", "INTERNAL_ERROR")
