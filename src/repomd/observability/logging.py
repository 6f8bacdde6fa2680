"""Structured logging for the repo.md client.

Provides:
- JSON-formatted logs for log aggregation systems
- Project and revision context propagated through context variables
- A human-readable console format for development

Usage:
    from repomd.observability.logging import configure_logging

    configure_logging(json_format=False, level="DEBUG")

    logger = logging.getLogger(__name__)
    logger.info("Fetched posts")  # Includes project_id and revision when set
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "repomd"

project_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("project_id", default="")
revision_var: contextvars.ContextVar[str] = contextvars.ContextVar("revision", default="")

_STANDARD_ATTRS = {
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
    "taskName",
    "message",
}


class JsonFormatter(logging.Formatter):
    """JSON log formatter with project and revision context.

    Output format:
    {
        "timestamp": "2026-01-10T12:34:56.789Z",
        "level": "DEBUG",
        "logger": "repomd.cache.request",
        "message": "Cache hit for https://static.repo.md/...",
        "module": "request",
        "function": "fetch_json",
        "line": 42,
        "project_id": "680e97604a0559a192640d2c",
        "revision": "rev-abc123"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        project_id = project_id_var.get()
        if project_id:
            log_data["project_id"] = project_id

        revision = revision_var.get()
        if revision:
            log_data["revision"] = revision

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Extra fields passed through logger.x(..., extra={...})
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_data[key] = value
                except (TypeError, ValueError):
                    log_data[key] = str(value)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for development.

    Output format:
    2026-01-10 12:34:56 | DEBUG    | repomd.search.engine | Indexed 12 posts | rev=rev-abc1
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level}{self.RESET}"

        message = record.getMessage()

        context_parts = []
        project_id = project_id_var.get()
        if project_id:
            context_parts.append(f"project={project_id[:8]}")
        revision = revision_var.get()
        if revision:
            context_parts.append(f"rev={revision[:8]}")

        context = f" | {' '.join(context_parts)}" if context_parts else ""

        result = f"{timestamp} | {level:8} | {record.name} | {message}{context}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Configure logging for the client's logger tree.

    Only the ``repomd`` logger is touched so that embedding applications keep
    control of the root logger.

    Args:
        json_format: Use JSON format (recommended for production)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colors: Use ANSI colors in console format
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper()))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(use_colors=use_colors))

    logger.addHandler(handler)
    logger.propagate = False

    # Reduce noise from the transport
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class LogContext:
    """Context manager for adding temporary log context.

    Usage:
        with LogContext(project_id="abc", revision="rev-1"):
            logger.info("Rebuilding index")  # Includes project_id and revision
    """

    def __init__(self, **kwargs: Any) -> None:
        self.extra = kwargs
        self._tokens: dict[str, contextvars.Token[str]] = {}

    def __enter__(self) -> "LogContext":
        if "project_id" in self.extra:
            self._tokens["project_id"] = project_id_var.set(self.extra["project_id"])
        if "revision" in self.extra:
            self._tokens["revision"] = revision_var.set(self.extra["revision"])
        return self

    def __exit__(self, *args: Any) -> None:
        for key, token in self._tokens.items():
            if key == "project_id":
                project_id_var.reset(token)
            elif key == "revision":
                revision_var.reset(token)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
