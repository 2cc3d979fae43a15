"""JSON logging for the exam engine.

Every record carries the service name, environment and, inside an HTTP
request, the request id set by ``RequestIDMiddleware``.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

from imtihon.core.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
}


class RequestContextFilter(logging.Filter):
    """Copy the current request id onto the record unless one was passed in ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get()
        return True


class EngineJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(
        self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["function"] = record.funcName
        log_record["service"] = settings.PROJECT_NAME
        log_record["env"] = settings.ENV
        if log_record.get("request_id") is None:
            log_record.pop("request_id", None)


def setup_logging(level: str | None = None) -> None:
    """Send JSON records to stdout; replaces any handlers already on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        EngineJsonFormatter("%(message)s %(request_id)s", datefmt="%Y-%m-%dT%H:%M:%S")
    )
    handler.addFilter(RequestContextFilter())
    root.addHandler(handler)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
