import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .exceptions import (
    ChatForwardError,
    InvalidRequestError,
    ModelResolutionError,
    ProxyError,
    SessionCreationError,
    UpstreamError,
    UpstreamRejectedError,
)
from .logging_config import logger


NO_PROVIDER_MARKER = "no provider accepting session"


class ErrorResponse(BaseModel):
    """
    Error payload returned by every endpoint:
    {
        "error": "model_not_found",
        "message": "No Supported Model Has Been Registered",
        "code": 400,
        "details": {...}
    }
    """

    error: str = Field(..., description="Machine-readable error type")
    message: str = Field(..., description="Human-readable error message")
    code: int = Field(..., description="HTTP status code for this error")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional structured error details"
    )


def status_for(exc: ProxyError) -> int:
    if isinstance(exc, (InvalidRequestError, ModelResolutionError)):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, UpstreamRejectedError):
        if exc.status_code == status.HTTP_400_BAD_REQUEST:
            return status.HTTP_400_BAD_REQUEST
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, SessionCreationError):
        if NO_PROVIDER_MARKER in exc.message.lower():
            return status.HTTP_400_BAD_REQUEST
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, ChatForwardError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, UpstreamError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(
    status_code: int,
    *,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    payload = ErrorResponse(
        error=error, message=message, code=status_code, details=details
    )
    return JSONResponse(status_code=status_code, content=payload.model_dump())


async def handle_proxy_error(request: Request, exc: ProxyError) -> JSONResponse:
    status_code = status_for(exc)
    details = dict(exc.details or {})
    if isinstance(exc, UpstreamError):
        if exc.status_code is not None:
            details.setdefault("upstream_status", exc.status_code)
        if exc.attempts is not None:
            details.setdefault("attempts", exc.attempts)
    logger.warning(
        "%s %s failed with %s (%d): %s",
        request.method,
        request.url.path,
        exc.error,
        status_code,
        exc.message,
    )
    return error_response(
        status_code, error=exc.error, message=exc.message, details=details or None
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        error="invalid_request",
        message="Invalid request body",
        details={"errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[Dict[str, Any]]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    error_id = uuid.uuid4().hex
    logger.exception(
        "Unhandled error %s %s (error_id=%s)",
        request.method,
        request.url.path,
        error_id,
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="internal_error",
        message="Internal server error",
        details={"error_id": error_id},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProxyError, handle_proxy_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)


__all__ = [
    "ErrorResponse",
    "error_response",
    "install_error_handlers",
    "status_for",
]
