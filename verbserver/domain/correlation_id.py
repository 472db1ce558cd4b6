"""Per-request correlation IDs and the logger adapter that stamps them."""

import contextvars
import logging
import uuid
from typing import Any, MutableMapping, Optional

LOGGER_PREFIX = "verbserver."

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "verbserver_correlation_id", default=None
)


def generate_correlation_id() -> str:
    """Generate a new correlation ID using UUID4."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """Retrieve the correlation ID bound to the current worker."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Bind a correlation ID to the current worker."""
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Forget the correlation ID of the current worker."""
    _correlation_id_var.set(None)


def component_for(logger_name: str) -> str:
    """Return the component part of a ``verbserver.*`` logger name."""
    if logger_name.startswith(LOGGER_PREFIX):
        return logger_name[len(LOGGER_PREFIX) :]
    return logger_name


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter injecting ``correlation_id`` and ``component`` into records."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        correlation_id = get_correlation_id()
        extra["correlation_id"] = correlation_id if correlation_id is not None else "-"
        extra["component"] = component_for(self.logger.name)
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(component: str) -> CorrelationLoggerAdapter:
    """Return an adapter for the ``verbserver.<component>`` logger."""
    return CorrelationLoggerAdapter(logging.getLogger(LOGGER_PREFIX + component), {})
