"""Logging configuration for the server and its embedding applications."""

import json
import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Mapping, Optional

from verbserver.domain.correlation_id import CorrelationLoggerAdapter

LOGGER_NAME = "verbserver"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5
REDACTED = "[REDACTED]"

SENSITIVE_NAME = re.compile(
    r"(?i)(authorization|cookie|session|token|password|secret|api[_-]?key)"
)
SENSITIVE_VALUES = (
    SENSITIVE_NAME,
    re.compile(r"\b[A-Fa-f0-9]{32,}\b"),
    re.compile(r"\b[A-Za-z0-9+/]{32,}={0,2}"),
)

# Record attributes copied into the JSON document when present.
EXTRA_KEYS = frozenset(
    {
        "listener",
        "client",
        "method",
        "route",
        "headers",
        "status_code",
        "bytes_in",
        "bytes_out",
        "tls",
        "tls_version",
        "session",
        "error_type",
        "error",
        "host",
        "port",
        "http_port",
        "https_port",
        "directory",
        "path",
        "signal",
        "destination",
        "log_level",
        "use_json",
        "socket_timeout",
        "shutdown_grace_seconds",
        "remaining_workers",
    }
)


def redact_sensitive(value: str) -> str:
    """Replace values that look like credentials or tokens."""
    if value and any(pattern.search(value) for pattern in SENSITIVE_VALUES):
        return REDACTED
    return value


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Mask header values whose name marks them as secret (cookies, auth)."""
    return {
        name: REDACTED if SENSITIVE_NAME.search(name) else redact_sensitive(value)
        for name, value in headers.items()
    }


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        return redact_sensitive(value)
    if isinstance(value, Mapping):
        return redact_headers(value)
    return value


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Ensure correlation_id and component exist on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        if not hasattr(record, "component"):
            record.component = record.name
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, keys sorted so lines diff cleanly."""

    def format(self, record: logging.LogRecord) -> str:
        document = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }
        event = getattr(record, "event", None)
        if event is not None:
            document["event"] = event
        document.update(
            (key, _scrub(value))
            for key, value in vars(record).items()
            if key in EXTRA_KEYS
        )
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, sort_keys=True, default=str)


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else logging.INFO


def _open_stream(destination: Optional[str]) -> logging.Handler:
    if not destination or destination.lower() == "stdout":
        return logging.StreamHandler(sys.stdout)
    target = Path(destination)
    target.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(target, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT)


def _build_handler(
    destination: Optional[str], level: int, use_json: bool = True
) -> logging.Handler:
    """Create the single stdout or rotating-file handler the logger writes to."""
    handler = _open_stream(destination)
    handler.setLevel(level)
    handler.setFormatter(
        JsonFormatter(datefmt=DATE_FORMAT)
        if use_json
        else logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    )
    handler.addFilter(CorrelationIdFilter())
    return handler


def configure_logging(
    level: str = "INFO", destination: Optional[str] = None, use_json: bool = True
) -> CorrelationLoggerAdapter:
    """Route everything under the ``verbserver`` logger to one handler.

    Calling it again replaces the previous handler, so embedding applications
    can reconfigure at runtime. Returns an adapter for the package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    while logger.handlers:
        stale = logger.handlers[0]
        logger.removeHandler(stale)
        stale.close()
    logger.addHandler(_build_handler(destination, numeric_level, use_json))

    adapter = CorrelationLoggerAdapter(logger, {})
    adapter.info(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "destination": destination or "stdout",
            "log_level": logging.getLevelName(numeric_level),
            "use_json": use_json,
        },
    )
    return adapter
