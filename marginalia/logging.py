from __future__ import annotations

"""Application-wide logging configuration.

Emits one JSON object per line with a stable set of keys:
- timestamp (UTC ISO8601), level, logger, service, environment, message
- structured extras passed as `logger.warning(msg, extra={...})` are merged
  into the object, e.g. paragraph indices or classification labels.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from marginalia.core.settings import get_settings

# Attributes every LogRecord carries; anything else came from `extra=`
_RECORD_ATTRS = frozenset(
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
        "taskName",
        "asctime",
    }
)


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter with stable keys and UTC timestamps."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        settings = get_settings()
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "timestamp": dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "service": settings.service_name,
            "environment": settings.environment,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key in payload:
                continue
            payload[key] = value
        if record.exc_info:
            etype = getattr(record.exc_info[0], "__name__", str(record.exc_info[0]))
            payload["error"] = {
                "class": etype,
                "message": str(record.exc_info[1])[:500],
            }
        try:
            return json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError):
            # Fall back to repr for values json cannot encode
            for key, value in list(payload.items()):
                try:
                    json.dumps({key: value})
                except (TypeError, ValueError):
                    payload[key] = repr(value)
            return json.dumps(payload, ensure_ascii=False)


def setup_logging() -> None:
    """Configure root logger to output one-line JSON logs."""

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


__all__ = ["setup_logging"]
