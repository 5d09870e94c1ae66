"""
Logging configuration using structlog for structured, JSON-based logging.

Structlog events are routed through stdlib logging so the same JSON lines
reach stderr and, optionally, an append-only log file.
"""

import logging
import logging.config
from pathlib import Path
from typing import Any

import structlog

REDACTED = "***REDACTED***"
SENSITIVE_KEYS = ("token", "password", "secret", "authorization", "api_key")


def redact_sensitive_data(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Redact values whose key name suggests a credential."""
    for key in list(event_dict):
        if any(marker in key.lower() for marker in SENSITIVE_KEYS) and isinstance(event_dict[key], str):
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(log_level: str = "INFO", log_file: str | None = None) -> None:
    """Configure structured logging with JSON output.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path; JSON lines are also appended there

    Raises:
        ValueError: If an invalid logging level is provided.
    """
    level = log_level.upper()
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if level not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {', '.join(sorted(valid_levels))}")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_sensitive_data,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: dict[str, dict[str, Any]] = {
        "default": {
            "level": level,
            "class": "logging.StreamHandler",
            "formatter": "plain",
            "stream": "ext://sys.stderr",
        },
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "level": level,
            "class": "logging.FileHandler",
            "formatter": "plain",
            "filename": log_file,
            "encoding": "utf-8",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"plain": {"format": "%(message)s"}},
            "handlers": handlers,
            "root": {"handlers": list(handlers), "level": level},
        }
    )


def get_logger(name: str | None = None) -> Any:
    """Get a logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("task_started", task="PROJ-1", stage="workspace_ready")
    """
    return structlog.get_logger(name)


def bind_task_context(task_key: str) -> None:
    """Bind the task key to every log line emitted while it is processed."""
    structlog.contextvars.bind_contextvars(task=task_key)


def clear_task_context() -> None:
    structlog.contextvars.unbind_contextvars("task")
