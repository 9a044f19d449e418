"""
Structured JSON logging configuration for Grafana/Loki compatibility.

This module provides:
- JSON-formatted log output for Grafana Loki ingestion
- Request ID and requester ID propagation via contextvars
- Consistent log structure across all services

Log Structure (JSON):
{
    "timestamp": "2024-01-15T10:30:00Z",
    "level": "INFO",
    "logger": "services.health_record_service",
    "message": "Health record created",
    "request_id": "abc-123",
    "requester_id": 7,
    "extra": { ... }
}

Usage:
    from core.logging_config import setup_logging

    # At app startup
    setup_logging()

    # In services (request_id/requester_id are auto-propagated)
    logger.info("Health record created", extra={"record_id": 12})
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# =============================================================================
# REQUEST CONTEXT
# =============================================================================
# ContextVar keeps the values coroutine-safe in async handlers.

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
requester_id_var: ContextVar[Optional[int]] = ContextVar("requester_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context (coroutine-safe)."""
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    """Set the request ID in context for the current request/coroutine."""
    request_id_var.set(request_id)


def clear_request_id() -> None:
    """Clear the request ID and requester (call at end of request)."""
    request_id_var.set(None)
    requester_id_var.set(None)


def set_requester_id(requester_id: Optional[int]) -> None:
    """Record which user the current request acts for."""
    requester_id_var.set(requester_id)


# =============================================================================
# JSON FORMATTER
# =============================================================================

# Standard LogRecord attributes, never copied into "extra"
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message"
}


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter optimized for Grafana Loki.

    Produces single-line JSON logs with consistent structure.
    All timestamps are UTC for Grafana time-series alignment.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as single-line JSON."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        requester_id = requester_id_var.get()
        if requester_id is not None:
            log_entry["requester_id"] = requester_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }

        if extra:
            log_entry["extra"] = extra

        return json.dumps(log_entry, default=str, ensure_ascii=False)


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_uvicorn: bool = True
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, use JSON format; if False, use human-readable format
        include_uvicorn: If True, also configure uvicorn loggers

    Environment Variables:
        LOG_LEVEL: Override the log level (default: INFO)
        LOG_FORMAT: Override format ("json" or "text", default: json)
    """
    level = os.environ.get("LOG_LEVEL", level).upper()
    json_format = os.environ.get("LOG_FORMAT", "json" if json_format else "text").lower() == "json"

    handler = logging.StreamHandler(sys.stdout)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        # Human-readable format for local development
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for logger_name in ["core", "api", "services", "repositories"]:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        logger.handlers = []  # Inherit from root
        logger.propagate = True

    if include_uvicorn:
        for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
            logger = logging.getLogger(logger_name)
            logger.handlers = []
            logger.propagate = True

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"level": level, "format": "json" if json_format else "text"}
    )
