"""Structured logging for mountmux.

Every module logs through ``get_logger(__name__)``. Proxied requests bind a
request id for the duration of the forward; mount table reloads are timed
with ``PerformanceLogger``.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

# ULID of the request currently being proxied, if any
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def add_request_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the process.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: JSON lines when True, coloured console output otherwise.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "mountmux") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class PerformanceLogger:
    """Time a block and log ``<operation> completed`` / ``<operation> failed``.

    Blocks slower than ``warn_after_ms`` log at WARNING, faster ones at DEBUG.
    Exceptions are logged at ERROR and propagate.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        warn_after_ms: float = 50.0,
        **context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.warn_after_ms = warn_after_ms
        self.context = context
        self._started = 0.0

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        elapsed_ms = (time.perf_counter() - self._started) * 1000
        if exc_type is not None:
            self.logger.error(
                f"{self.operation} failed",
                duration_ms=elapsed_ms,
                error=str(exc_val),
                **self.context,
            )
            return
        log = self.logger.warning if elapsed_ms > self.warn_after_ms else self.logger.debug
        log(f"{self.operation} completed", duration_ms=elapsed_ms, **self.context)


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def clear_request_id() -> None:
    request_id_var.set(None)


# Defaults until the host app applies its settings
configure_logging()
