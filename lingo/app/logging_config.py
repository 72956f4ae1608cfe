from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

_RESERVED_ATTRIBUTES = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "event": getattr(record, "event", None),
            "service": getattr(record, "service_name", None),
            "version": getattr(record, "service_version", None),
        }

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRIBUTES and not key.startswith("_")
        }
        payload.update(extras)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


class ServiceContextFilter(logging.Filter):
    def __init__(self, service_name: str, service_version: str) -> None:
        super().__init__()
        self._service_name = service_name
        self._service_version = service_version

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "service_name", None) is None:
            record.service_name = self._service_name
        if getattr(record, "service_version", None) is None:
            record.service_version = self._service_version
        return True


def configure_logging(
    log_level: str,
    service_name: str | None = None,
    service_version: str | None = None,
) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(JsonLogFormatter())
    if service_name is not None:
        stream_handler.addFilter(
            ServiceContextFilter(service_name, service_version or "")
        )
    root_logger.addHandler(stream_handler)
