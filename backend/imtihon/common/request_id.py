"""Request id propagation and access logging."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from imtihon.core.logging import get_logger, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Health endpoints log at DEBUG so they do not drown the access log
_QUIET_PATHS = ("/health", "/ready")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Take the caller's ``X-Request-ID`` or mint one, and log each request once."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        started = time.perf_counter()
        fields = {"method": request.method, "path": request.url.path}
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={**fields, "status_code": 500, "latency_ms": _elapsed_ms(started), "error": str(e)},
                exc_info=True,
            )
            raise
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        log = logger.debug if request.url.path.endswith(_QUIET_PATHS) else logger.info
        log(
            "Request completed",
            extra={
                **fields,
                "request_id": request_id,
                "status_code": response.status_code,
                "latency_ms": _elapsed_ms(started),
            },
        )
        return response


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
