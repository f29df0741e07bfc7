from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from contactpro.context import get_correlation_id
from contactpro.core.config import Settings, get_settings


MAX_ERROR_LENGTH = 500

# Structured keys passed through ``extra=``; anything else on a record is dropped.
LOG_FIELDS = frozenset(
    {
        "entity",
        "operation",
        "record_id",
        "count",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "outcome",
        "error",
    }
)

_default_record_factory = logging.getLogRecordFactory()


def _stamp_correlation_id(record: logging.LogRecord) -> logging.LogRecord:
    if not getattr(record, "correlation_id", None):
        record.correlation_id = get_correlation_id()
    return record


def _correlated_record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    return _stamp_correlation_id(_default_record_factory(*args, **kwargs))


class CorrelationIdFilter(logging.Filter):
    """Covers records built before the correlated factory was installed."""

    def filter(self, record: logging.LogRecord) -> bool:
        _stamp_correlation_id(record)
        return True


class JsonLogFormatter(logging.Formatter):
    def __init__(self, service: str = "contactpro", environment: str = "local") -> None:
        super().__init__()
        self.service = service
        self.environment = environment

    def _fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields = {key: record.__dict__[key] for key in LOG_FIELDS if key in record.__dict__}
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)
        return fields

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "env": self.environment,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "fields": self._fields(record),
        }
        return json.dumps(payload, default=str)


def configure_logging(settings: Settings | None = None) -> None:
    """Route every logger through one JSON stdout handler. Safe to call repeatedly."""
    root = logging.getLogger()
    if getattr(root, "_contactpro_configured", False):
        return

    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonLogFormatter(service=settings.otel_service_name, environment=settings.app_env))
    handler.addFilter(CorrelationIdFilter())

    logging.setLogRecordFactory(_correlated_record_factory)
    root.handlers[:] = [handler]
    root.setLevel(level)
    root._contactpro_configured = True  # type: ignore[attr-defined]
