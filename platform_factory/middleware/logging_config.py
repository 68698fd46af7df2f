"""
Logging setup for the platform factory.

Two output formats share one handler on the ``platform_factory`` logger tree:

- ``readable`` (development / testing): one coloured line per record, with
  the trace id and caller appended when a request is active.
- ``json`` (production): one JSON object per line for log shippers.

``LOG_FORMAT`` forces a format; ``LOG_LEVEL`` sets the level (default DEBUG
outside production, INFO in production).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

SERVICE_NAME = "platform-factory"
LOGGER_NAME = "platform_factory"


class RequestContextFilter(logging.Filter):
    """Stamp each record with the active request's trace id and caller."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "trace_id", None) is None:
                record.trace_id = getattr(g, "request_id", None)
            if getattr(record, "caller_id", None) is None:
                record.caller_id = getattr(g, "current_user_id", None)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    CONTEXT_FIELDS = (
        "trace_id",
        "caller_id",
        "endpoint",
        "method",
        "path",
        "status",
        "duration_ms",
        "remote_addr",
        "build_id",
        "provenance",
        "sector",
        "file_count",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in self.CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured single-line output for a terminal."""

    LEVEL_COLORS = {
        "DEBUG": "\033[2m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        line = f"{color}{stamp} {record.levelname[0]}{self.RESET} {record.name}: {record.getMessage()}"

        context = []
        for label, key in (("trace", "trace_id"), ("caller", "caller_id"), ("build", "build_id")):
            value = getattr(record, key, None)
            if value:
                context.append(f"{label}={value}")
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            context.append(f"{duration:.0f}ms")
        if context:
            line += "  [" + " ".join(context) + "]"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_format(app) -> str:
    forced = (app.config.get("LOG_FORMAT") or os.getenv("LOG_FORMAT", "")).lower()
    if forced in ("json", "readable"):
        return forced
    production = not app.debug and not app.testing
    return "json" if production else "readable"


def configure_logging(app):
    """Attach the platform factory handler and set levels for ``app``."""
    fmt = _resolve_format(app)
    default_level = "INFO" if fmt == "json" else "DEBUG"
    level_name = (app.config.get("LOG_LEVEL") or os.getenv("LOG_LEVEL") or default_level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    handler.addFilter(RequestContextFilter())

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.handlers = [handler]
    package_logger.setLevel(level)
    package_logger.propagate = False

    app.logger.handlers = [handler]
    app.logger.setLevel(level)

    for chatty in ("werkzeug", "sqlalchemy.engine", "anthropic", "openai", "httpx", "google_genai"):
        logging.getLogger(chatty).setLevel(logging.WARNING)

    if not app.testing:
        package_logger.info("Logging ready: level=%s format=%s", level_name, fmt)
