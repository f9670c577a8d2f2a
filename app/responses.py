"""Response envelope helpers and exception handlers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

ERR_INVALID_REQUEST = "invalid request"
ERR_UNAUTHORIZED = "unauthorized"
ERR_NOT_FOUND = "not found"
ERR_INTERNAL = "internal server error"
ERR_RATE_LIMITED = "rate limit exceeded"


def api_error(
    status_code: int,
    message: str,
    error: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"message": message, "error": error},
        headers=headers,
    )


def error_body(message: str, error: Optional[str] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"status": STATUS_ERROR, "message": message}
    if error:
        body["error"] = error
    return body


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        message = str(detail.get("message") or ERR_INVALID_REQUEST)
        error = detail.get("error")
    else:
        message = str(detail)
        error = None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, error),
        headers=getattr(exc, "headers", None),
    )


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        problems.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(ERR_INVALID_REQUEST, "; ".join(problems)),
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error for %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(ERR_INTERNAL),
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected)
