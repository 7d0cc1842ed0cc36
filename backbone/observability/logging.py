"""
Structured JSON logging with run ID propagation.
"""

import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import Any

from .context import get_company_id, get_run_id

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Output format:
    {
        "timestamp": "2026-01-15T10:30:00.000Z",
        "level": "INFO",
        "logger": "backbone.runtime.engine",
        "message": "Computed portfolio",
        "run_id": "run-abc123",
        "company_id": "acme",
        "actions": 12,
        ...
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = get_run_id()
        if run_id:
            log_obj["run_id"] = run_id
        company_id = get_company_id()
        if company_id:
            log_obj["company_id"] = company_id

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_obj[key] = value

        return json.dumps(log_obj, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        run_id = get_run_id()
        company_id = get_company_id()
        prefix = ""
        if run_id:
            prefix += f"[{run_id[:12]}] "
        if company_id:
            prefix += f"<{company_id}> "
        line = f"{timestamp} [{record.levelname}] {record.name}: {prefix}{record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str | None = None,
    json_format: bool | None = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to BACKBONE_LOG_LEVEL, then INFO.
        json_format: Use JSON format. If None, BACKBONE_LOG_JSON decides,
            falling back to JSON whenever stderr is not a TTY.
    """
    if level is None:
        level = os.environ.get("BACKBONE_LOG_LEVEL", "INFO")
    if json_format is None:
        env_json = os.environ.get("BACKBONE_LOG_JSON")
        if env_json is not None:
            json_format = env_json.lower() in ("1", "true", "yes")
        else:
            json_format = not sys.stderr.isatty()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else HumanFormatter())
    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("Ranked actions", extra={"count": 42})
    """
    return logging.getLogger(name)
