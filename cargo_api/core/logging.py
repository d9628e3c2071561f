"""
Structured logging for the cargo API.

structlog sits on top of the standard library logger. Development output is
a coloured console stream; every other environment emits one JSON object per
line. The request id and the acting worker id live in context variables and
are stamped onto each event so a single order request can be followed
through the service, repository and storage layers.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

from cargo_api.core.config import Settings, get_settings

_request_id: ContextVar[str] = ContextVar("cargo_request_id", default="")
_worker_id: ContextVar[Optional[str]] = ContextVar("cargo_worker_id", default=None)

# Libraries that are chatty at INFO level.
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "urllib3")


def inject_correlation(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Copy the request id and acting worker id onto the event, if set."""
    if request_id := _request_id.get():
        event_dict.setdefault("request_id", request_id)
    if worker_id := _worker_id.get():
        event_dict.setdefault("worker_id", worker_id)
    return event_dict


def _renderer(settings: Settings) -> Processor:
    if settings.is_development:
        return structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    return structlog.processors.JSONRenderer()


def configure_logging() -> None:
    """
    Install the structlog processor chain and the root logger level.

    Safe to call more than once; the last call wins.
    """
    settings = get_settings()

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        inject_correlation,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*shared, _renderer(settings)],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.getLevelName(settings.log_level),
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Bind the id of the request being handled, generating one when the
    client did not send ``X-Request-ID``.
    """
    value = request_id or str(uuid4())
    _request_id.set(value)
    return value


def get_request_id() -> str:
    return _request_id.get()


def set_worker_id(worker_id: Optional[str]) -> None:
    """Bind the authenticated worker for the rest of the request."""
    _worker_id.set(worker_id)


def clear_context() -> None:
    """Forget the request and worker ids once the response has been sent."""
    _request_id.set("")
    _worker_id.set(None)


class OperationTimer:
    """
    Times a block and logs its outcome.

    Completion is logged at info level, or warning when the block took longer
    than ``slow_threshold_ms``. A block that raises is logged at error level
    with the exception type and the exception is left to propagate.
    """

    slow_threshold_ms = 500

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger.bind(operation=operation, **context)
        self.started: Optional[float] = None
        self.duration_ms: Optional[float] = None

    def __enter__(self) -> "OperationTimer":
        self.started = time.perf_counter()
        self.logger.debug("Operation started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.started is None:
            return

        self.duration_ms = round((time.perf_counter() - self.started) * 1000, 2)

        if exc_type is not None:
            self.logger.error(
                "Operation failed",
                duration_ms=self.duration_ms,
                error_type=exc_type.__name__,
            )
        elif self.duration_ms > self.slow_threshold_ms:
            self.logger.warning("Slow operation", duration_ms=self.duration_ms)
        else:
            self.logger.info("Operation completed", duration_ms=self.duration_ms)


def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    **context: Any,
) -> OperationTimer:
    """
    Time the enclosed block.

    Example:
        >>> with log_performance(logger, "order_create", worker_id=worker_id):
        ...     await service.create_order(identity, fields)
    """
    return OperationTimer(logger, operation, **context)
