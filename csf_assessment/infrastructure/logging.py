"""
Logging for the CSF self-assessment engine.

Handlers are built from ``LoggingConfig`` and attached to the
``csf_assessment`` package logger only. Records pick up the active
assessment context (data file, session file, question id, operation) from a
shared ``ContextFilter``; the JSON formatter emits those keys as fields and
the text formatter appends them as ``key=value`` pairs.

Nothing is configured at import time. Entry points call
``auto_configure_logging()``.
"""

from __future__ import annotations

import json
import logging
import logging.config
from collections.abc import Callable
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

if TYPE_CHECKING:
    from .config import LoggingConfig, Settings

P = ParamSpec("P")
R = TypeVar("R")

ROOT_LOGGER_NAME = "csf_assessment"
CONTEXT_KEYS = ("operation", "data_file", "session_file", "question_id")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return {key: getattr(record, key) for key in CONTEXT_KEYS if getattr(record, key, None)}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with the assessment context as fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        entry.update(_record_context(record))

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            entry["exception"] = {
                "type": type(exc).__name__,
                "message": str(exc),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, ensure_ascii=False, default=str)


class ContextFormatter(logging.Formatter):
    """Plain text lines followed by the active context, e.g. ``[question_id=GV.OC-01]``."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, TEXT_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} [{pairs}]"


class ContextFilter(logging.Filter):
    """Copies the current assessment context onto every record it sees."""

    def __init__(self):
        super().__init__()
        self.context: dict[str, Any] = {}

    def set_context(self, **kwargs: Any) -> None:
        self.context.update(kwargs)

    def clear_context(self) -> None:
        self.context.clear()

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


context_filter = ContextFilter()


def build_logging_config(config: LoggingConfig) -> dict[str, Any]:
    """Translate a ``LoggingConfig`` into a ``dictConfig`` mapping."""
    formatter = "structured" if config.structured else "text"
    handlers: dict[str, dict[str, Any]] = {}

    if config.console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": formatter,
            "filters": ["context"],
            "stream": "ext://sys.stderr",
        }

    file_handler = config.get_file_handler_config()
    if file_handler is not None:
        # Files are always JSON so they can be parsed later
        handlers["file"] = {**file_handler, "formatter": "structured", "filters": ["context"]}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {"()": StructuredFormatter},
            "text": {"()": ContextFormatter},
        },
        "filters": {"context": {"()": lambda: context_filter}},
        "handlers": handlers,
        "loggers": {
            ROOT_LOGGER_NAME: {
                "level": config.level,
                "handlers": list(handlers),
                "propagate": False,
            },
        },
    }


def setup_logging(config: LoggingConfig) -> None:
    """
    Configure the package logger from ``config``.

    Example:
        >>> setup_logging(LoggingConfig(level="DEBUG", file_path="./logs/assessment.log"))
    """
    if config.file_path:
        Path(config.file_path).parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(config))


def auto_configure_logging(settings: Settings | None = None) -> None:
    """
    Configure logging from the application settings.

    The ``testing`` environment keeps the package quiet (WARNING, no console)
    unless a log file is configured.
    """
    from .config import get_settings

    settings = settings or get_settings()
    config = settings.logging
    if settings.app.environment == "testing":
        config = config.model_copy(update={"level": "WARNING", "console_enabled": False})

    setup_logging(config)
    get_logger(__name__).debug(
        f"Logging configured for {settings.app.environment} "
        f"(level={config.level}, file={config.file_path or '-'})"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Logger namespaced under the package logger.

    Example:
        >>> get_logger("scripts.run_assessment").name
        'csf_assessment.scripts.run_assessment'
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class LogContext:
    """
    Temporarily add context keys to every record.

    Example:
        >>> with LogContext(session_file="./exports/session.json"):
        ...     logger.info("Session saved")
    """

    def __init__(self, **kwargs: Any):
        self.context = {key: value for key, value in kwargs.items() if value is not None}
        self.previous_context: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self.previous_context = dict(context_filter.context)
        context_filter.set_context(**self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        context_filter.context = self.previous_context


def log_operation(
    operation: str, logger: logging.Logger | None = None
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Log start, success and failure of a file-level operation.

    Failures are logged at ERROR and re-raised unchanged.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            func_logger = logger or get_logger(func.__module__)
            with LogContext(operation=operation):
                func_logger.debug(f"Starting {operation}")
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    func_logger.error(f"Failed {operation}: {e}")
                    raise
                func_logger.info(f"Completed {operation} successfully")
                return result

        return wrapper

    return decorator
