"""Exception handlers that render every failure as the error envelope.

Envelope: ``{error_code, message, details, request_id}``.
"""

import uuid
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from imtihon.core.app_exceptions import AppError
from imtihon.core.config import settings
from imtihon.core.logging import get_logger

logger = get_logger(__name__)


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Any | None = None
    request_id: str | None = None


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _envelope(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        request_id=get_request_id(request),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def _split_detail(detail: Any) -> tuple[str, str, Any]:
    """Map an ``HTTPException.detail`` onto (code, message, details)."""
    if isinstance(detail, dict):
        if "code" in detail:
            return detail["code"], detail.get("message", "An error occurred"), detail.get("details")
        rest = dict(detail)
        return "HTTP_ERROR", rest.pop("message", "An error occurred"), rest
    return "HTTP_ERROR", str(detail), None


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """422 with one ``{field, issue, type}`` entry per pydantic error."""
    issues = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "issue": err.get("msg", "Validation error"),
            "type": err.get("type", "validation_error"),
        }
        for err in exc.errors()
    ]
    return _envelope(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Invalid request data",
        issues,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc, AppError):
        return _envelope(request, exc.status_code, exc.code, exc.message, exc.details)
    code, message, details = _split_detail(exc.detail)
    return _envelope(
        request, exc.status_code, code, message, details, headers=getattr(exc, "headers", None)
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={"path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )
    if settings.ENV == "prod":
        return _envelope(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An internal server error occurred",
        )
    return _envelope(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        str(exc),
        {"type": type(exc).__name__},
    )
