"""
Structured JSON logging configuration.

Every log line is a single JSON object carrying the request correlation
ID and, where known, the acting user and reporte. Logs go to stdout so
the container runtime can ship them to any aggregator.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Attributes every LogRecord has; anything else came in through extra={...}
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "taskName", "exc_info", "exc_text", "stack_info",
})

# Context fields emitted right after the base fields, in this order
CONTEXT_FIELDS = (
    "request_id",
    "path",
    "method",
    "status_code",
    "latency_ms",
    "user_id",
    "reporte_id",
)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Output fields:
    - timestamp: ISO 8601 UTC with microseconds
    - level, logger, message
    - request context (request_id, path, method, status_code, latency_ms)
    - domain context (user_id, reporte_id)
    - exception: formatted traceback when exc_info is set
    - any other field passed through extra={...}

    Example output:
        {"timestamp": "2025-11-24T10:30:00.123456+00:00", "level": "INFO",
         "message": "Reporte submitted", "logger": "reportes.api.v1.conductor",
         "request_id": "abc-123", "reporte_id": "5f0c..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON string.

        Args:
            record: LogRecord to format

        Returns:
            JSON string representation of log record
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_info"] = self.formatStack(record.stack_info)

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True
) -> None:
    """
    Configure application logging.

    Replaces any handlers on the root logger with a single stdout
    handler and quiets chatty third-party loggers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatter (True) or a plain text one (False)

    Example:
        # In main.py lifespan
        setup_logging(level="INFO", json_format=True)
    """
    root_logger = logging.getLogger()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance with given name.

    Example:
        logger = get_logger(__name__)
        logger.info("Store validated", extra={"request_id": "abc-123"})
    """
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    reporte_id: Optional[str] = None,
    path: Optional[str] = None,
    method: Optional[str] = None,
    status_code: Optional[int] = None,
    latency_ms: Optional[float] = None,
    **extra_fields: Any
) -> None:
    """
    Log message with structured context fields.

    Args:
        logger: Logger instance
        level: Log level name (debug, info, warning, error, critical)
        message: Log message
        request_id: Request correlation ID
        user_id: Acting user profile ID
        reporte_id: Reporte the message is about
        path: Request path
        method: HTTP method
        status_code: HTTP status code
        latency_ms: Request latency in milliseconds
        **extra_fields: Additional fields to include

    Example:
        log_with_context(
            logger,
            "info",
            "Reporte timed out",
            reporte_id=reporte.id,
            user_id=reporte.user_id,
        )
    """
    extra: Dict[str, Any] = {}

    context = {
        "request_id": request_id,
        "user_id": user_id,
        "reporte_id": reporte_id,
        "path": path,
        "method": method,
        "status_code": status_code,
        "latency_ms": latency_ms,
    }
    for key, value in context.items():
        if value is not None:
            extra[key] = value

    extra.update(extra_fields)

    log_method = getattr(logger, level.lower())
    log_method(message, extra=extra)
