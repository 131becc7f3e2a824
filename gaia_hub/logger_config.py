"""Logging setup for the Gaia hub driver layer.

Provides:
- StructuredLogFormatter: one JSON object per log line
- ErrorCategory / log_structured_error: uniform error records
- log_driver_call: decorator that logs and meters each driver operation
"""

from __future__ import annotations

import datetime
import functools
import json
import logging
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from .metrics_config import record_operation_error
from .metrics_config import record_operation_start
from .metrics_config import record_operation_success

driver_logger = logging.getLogger("gaia_hub.drivers")
error_logger = logging.getLogger("gaia_hub.errors")


class ErrorCategory(Enum):
    """Severity buckets for structured error records."""

    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


_CATEGORY_LEVELS = {
    ErrorCategory.CRITICAL: logging.CRITICAL,
    ErrorCategory.ERROR: logging.ERROR,
    ErrorCategory.WARNING: logging.WARNING,
    ErrorCategory.INFO: logging.INFO,
}


class StructuredLogFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_data.update(extra_fields)
        return json.dumps(log_data, default=str)


def setup_logging(
    log_level: str = "INFO",
    structured: bool = True,
    log_file: str | Path | None = None,
) -> None:
    """Configure the ``gaia_hub`` logger tree.

    Args:
        log_level: Level name for the package loggers
        structured: Emit JSON lines instead of the plain text format
        log_file: If set, log to a rotating file (10MB x 5) instead of stderr
    """
    package_logger = logging.getLogger("gaia_hub")
    package_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
    else:
        handler = logging.StreamHandler()

    if structured:
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    package_logger.addHandler(handler)
    package_logger.propagate = False


def log_structured_error(
    category: ErrorCategory,
    message: str,
    exception: BaseException | None = None,
    **context: Any,
) -> None:
    """Log an error with its category and arbitrary context fields."""
    extra_fields: dict[str, Any] = {"category": category.value, **context}
    if exception is not None:
        extra_fields["error_type"] = type(exception).__name__
        extra_fields["error_message"] = str(exception)
        to_dict = getattr(exception, "to_dict", None)
        if callable(to_dict):
            extra_fields["error"] = to_dict()
    error_logger.log(
        _CATEGORY_LEVELS[category],
        message,
        exc_info=exception if category is ErrorCategory.CRITICAL else None,
        extra={"extra_fields": extra_fields},
    )


def _summarize(result: Any) -> str:
    entries = getattr(result, "entries", None)
    if entries is not None:
        return f"{len(entries)} entries, continuation_token={getattr(result, 'continuation_token', None)!r}"
    return repr(result)


def log_driver_call(operation: str):
    """Decorator for async driver methods: logs the call, its outcome and metrics.

    The wrapped method's ``self`` must expose ``backend_type``.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            backend = getattr(self, "backend_type", "unknown")
            driver_logger.debug(
                f"{backend}.{operation} called",
                extra={"extra_fields": {"backend": backend, "operation": operation}},
            )
            start_time = record_operation_start()
            try:
                result = await func(self, *args, **kwargs)
            except Exception as e:
                record_operation_error(backend, operation, start_time, e)
                # Path rejections are caller errors, not backend faults
                is_path_error = getattr(e, "error_code", "") == "INVALID_PATH"
                category = ErrorCategory.WARNING if is_path_error else ErrorCategory.ERROR
                log_structured_error(
                    category=category,
                    message=f"{backend}.{operation} failed",
                    exception=e,
                    backend=backend,
                    operation=operation,
                )
                raise
            record_operation_success(backend, operation, start_time)
            driver_logger.info(
                f"{backend}.{operation} returned: {_summarize(result)}",
                extra={"extra_fields": {"backend": backend, "operation": operation}},
            )
            return result

        return wrapper

    return decorator
