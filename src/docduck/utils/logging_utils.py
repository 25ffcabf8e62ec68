"""Logging utilities for DocDuck.

Structured logging is configured with structlog on top of the standard
library. Console output uses structlog's column renderer; file output and
``json_logs`` mode are rendered as JSON so that provider diagnostics can be
shipped to a log collector.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

import structlog
from structlog.dev import Column
from structlog.processors import CallsiteParameter, CallsiteParameterAdder

# Prevent logging output before setup_logging configures handlers
logging.getLogger().addHandler(logging.NullHandler())

# Third-party loggers that chat at INFO about every request
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "botocore", "boto3", "s3transfer")

LEVEL_STYLES: dict[str, str] = {
    "CRITICAL": "\033[1;31m",
    "ERROR": "\033[31m",
    "WARNING": "\033[33m",
    "INFO": "\033[36m",
    "DEBUG": "\033[32m",
}

LogCallback = Callable[[str, str, str], None]


class DocDuckLogger:
    """Logger adapter that tags every record with a subsystem."""

    def __init__(self, base_logger: logging.Logger) -> None:
        self._base_logger = base_logger

    def log(
        self,
        level: int,
        msg: str,
        *args: Any,
        subsystem: str = "DocDuck",
        **kwargs: Any,
    ) -> None:
        """Log a message with optional subsystem context."""
        extra = kwargs.pop("extra", {})
        extra["subsystem"] = subsystem
        stacklevel = kwargs.pop("stacklevel", 1)
        self._base_logger.log(
            level,
            msg,
            *args,
            extra=extra,
            stacklevel=stacklevel + 1,
            **kwargs,
        )

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, stacklevel=2, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, stacklevel=2, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.WARNING, msg, *args, stacklevel=2, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.ERROR, msg, *args, stacklevel=2, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Delegate ``ERROR`` messages with exception info."""
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, msg, *args, stacklevel=2, **kwargs)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._base_logger, name)


logger: DocDuckLogger = DocDuckLogger(logging.getLogger("docduck"))


def uppercase_level(
    _logger: logging.Logger, _name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Ensure the ``level`` field is uppercase."""
    level = event_dict.get("level")
    if level is not None:
        event_dict["level"] = str(level).upper()
    return event_dict


def insert_logger_name(
    _logger: logging.Logger, _name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Prefer the subsystem over the dotted logger name when rendering."""
    subsystem = event_dict.pop("subsystem", None)
    logger_name = event_dict.pop("logger", None)
    if subsystem or logger_name:
        event_dict["logger_name"] = subsystem or logger_name
    return event_dict


def format_location(
    _logger: logging.Logger, _name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Format filename and line number as (file.py:123)."""
    filename = event_dict.pop("filename", None)
    lineno = event_dict.pop("lineno", None)
    if filename and lineno:
        event_dict["location"] = f"({filename}:{lineno})"
    return event_dict


def add_thread_id(
    _logger: logging.Logger, _name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict["thread_id"] = threading.current_thread().name
    return event_dict


def _styled(prefix: str, suffix: str = "\033[0m") -> Callable[[str, Any], str]:
    def formatter(_key: str, value: Any) -> str:
        if not value:
            return ""
        return f"{prefix}{value}{suffix}"

    return formatter


def _level_formatter(_key: str, value: Any) -> str:
    if not value:
        return ""
    level_str = str(value)
    color_code = LEVEL_STYLES.get(level_str, "")
    reset_code = "\033[0m" if color_code else ""
    return f"[{color_code}{level_str}{reset_code}]"


def _console_columns() -> list[Column]:
    return [
        Column("timestamp", _styled("\033[90m")),
        Column("thread_id", _styled("[", "]")),
        Column("level", _level_formatter),
        Column("logger_name", _styled("[\033[94m", "\033[0m]")),
        Column("event", lambda _key, value: "" if value is None else str(value)),
        Column("location", _styled("\033[90m")),
        Column(
            "",
            structlog.dev.KeyValueColumnFormatter(
                key_style=None, value_style="", reset_style="", value_repr=str
            ),
        ),
    ]


def setup_logging(
    log_file: str | None = None,
    log_level: int = logging.INFO,
    json_logs: bool = False,
) -> None:
    """Configure structlog and standard logging.

    Args:
        log_file: Optional path to a log file. Console logging is always on.
        log_level: Logging level.
        json_logs: Emit JSON logs to the console if True.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    for name in NOISY_LOGGERS:
        noisy = logging.getLogger(name)
        noisy.handlers = []
        noisy.propagate = True
        noisy.setLevel(logging.WARNING)

    timestamper = structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S")
    callsite = CallsiteParameterAdder(
        [CallsiteParameter.FILENAME, CallsiteParameter.LINENO],
        additional_ignores=["docduck.utils.logging_utils"],
    )

    pre_chain = [
        structlog.stdlib.add_log_level,
        uppercase_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        timestamper,
        add_thread_id,
        callsite,
        insert_logger_name,
        format_location,
    ]

    console_renderer = structlog.dev.ConsoleRenderer(
        colors=True, sort_keys=False, columns=_console_columns()
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=pre_chain,
            ),
        )
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer() if json_logs else console_renderer,
            foreign_pre_chain=pre_chain,
        ),
    )
    root_logger.addHandler(console_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            uppercase_level,
            timestamper,
            add_thread_id,
            callsite,
            insert_logger_name,
            format_location,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )


def get_logger() -> DocDuckLogger:
    """Get the configured DocDuck logger."""
    return logger


def log_message(
    level: str,
    message: str,
    subsystem: str = "DocDuck",
    callback: LogCallback | None = None,
) -> None:
    """Log a message and optionally forward it to a caller-supplied callback."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.log(log_level, message, subsystem=subsystem, stacklevel=2)

    if callback:
        try:
            callback(level, message, subsystem)
        except (TypeError, ValueError, KeyError) as exc:
            logger.warning("Failed to send log to callback: %s", exc)
