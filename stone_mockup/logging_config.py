"""
Structured logging for the stone_mockup package.

Provides:
- JSON formatter (one object per line) for log files
- Console formatter with optional colors
- log_timing / timed for render and export durations, with an optional
  threshold that turns slow operations into warnings
- LogContext for tagging every record inside a scope (export id, project)

Usage:
    from stone_mockup.logging_config import setup_logging, get_logger

    setup_logging(level=logging.INFO, json_file="mockup.log.json")
    logger = get_logger(__name__)
    logger.info("Rendered piece", extra={"piece_id": piece.id})
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union

F = TypeVar("F", bound=Callable[..., Any])

PACKAGE_LOGGER = "stone_mockup"

# Attributes every LogRecord carries; anything else came in through extra={}
_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message", "asctime",
})


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class JSONFormatter(logging.Formatter):
    """Format records as single-line JSON objects.

    Output:
        {"timestamp": "...", "level": "INFO", "logger": "...", "message": "...", ...}
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno >= logging.WARNING:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            for key, value in _extra_fields(record).items():
                try:
                    json.dumps(value)
                    entry[key] = value
                except (TypeError, ValueError):
                    entry[key] = str(value)

        return json.dumps(entry, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable one-line format.

    Format: [HH:MM:SS] LEVEL    logger: message [key=value, ...]
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, show_extra: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.show_extra = show_extra

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level_str = f"{self.COLORS[level]}{level:8}{self.RESET}"
        else:
            level_str = f"{level:8}"

        logger_name = record.name
        prefix = PACKAGE_LOGGER + "."
        if logger_name.startswith(prefix):
            logger_name = logger_name[len(prefix):]

        extra_str = ""
        if self.show_extra:
            parts = []
            for key, value in _extra_fields(record).items():
                if isinstance(value, float):
                    parts.append(f"{key}={value:.3g}")
                elif isinstance(value, (list, tuple)) and len(value) > 3:
                    parts.append(f"{key}=[...{len(value)} items]")
                else:
                    parts.append(f"{key}={value}")
            if parts:
                extra_str = " [" + ", ".join(parts) + "]"

        result = f"[{time_str}] {level_str} {logger_name}: {record.getMessage()}{extra_str}"
        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)
        return result


def setup_logging(
    level: int = logging.INFO,
    json_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    use_colors: bool = True,
    root_logger: bool = False,
) -> logging.Logger:
    """Configure handlers for the package logger (or the root logger).

    Args:
        level: Minimum log level
        json_file: Optional path of a JSON-lines log file
        console: Log to stderr
        use_colors: ANSI colors on the console
        root_logger: Configure the root logger instead of ``stone_mockup``

    Returns:
        The configured logger
    """
    logger = logging.getLogger("" if root_logger else PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ConsoleFormatter(use_colors=use_colors))
        logger.addHandler(console_handler)

    if json_file:
        json_handler = logging.FileHandler(Path(json_file), encoding="utf-8")
        json_handler.setLevel(level)
        json_handler.setFormatter(JSONFormatter())
        logger.addHandler(json_handler)

    if not root_logger:
        logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__``."""
    return logging.getLogger(name)


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    warn_after: Optional[float] = None,
    **extra_fields: Any,
) -> Iterator[Dict[str, Any]]:
    """Log start, completion and failure of an operation with its duration.

    Args:
        logger: Logger to write to
        operation: Operation description
        level: Level for the start/complete records
        warn_after: Seconds; completions slower than this are logged at WARNING
        **extra_fields: Fields added to every record

    Yields:
        dict the caller may fill with extra result fields; ``elapsed_seconds``
        is set on completion
    """
    timing_info: Dict[str, Any] = {}
    start = time.perf_counter()

    logger.log(level, "Starting: %s", operation, extra={
        "event": "start",
        "operation": operation,
        **extra_fields,
    })

    try:
        yield timing_info
    except Exception as e:
        elapsed = time.perf_counter() - start
        logger.error("Failed: %s (%.3fs) - %s", operation, elapsed, e, extra={
            "event": "error",
            "operation": operation,
            "elapsed_seconds": elapsed,
            "error": str(e),
            **extra_fields,
        })
        raise

    elapsed = time.perf_counter() - start
    timing_info["elapsed_seconds"] = elapsed
    slow = warn_after is not None and elapsed > warn_after
    logger.log(
        logging.WARNING if slow else level,
        "%s: %s (%.3fs)", "Slow" if slow else "Completed", operation, elapsed,
        extra={
            "event": "slow" if slow else "complete",
            "operation": operation,
            **extra_fields,
            **timing_info,
        },
    )


def timed(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
    operation: Optional[str] = None,
    warn_after: Optional[float] = None,
) -> Callable[[F], F]:
    """Decorator form of log_timing.

    Example:
        @timed(level=logging.INFO, warn_after=0.5)
        def write_pdf(document): ...
    """
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            func_logger = logger or logging.getLogger(func.__module__)
            with log_timing(func_logger, operation or func.__name__, level, warn_after):
                return func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator


class _ContextFilter(logging.Filter):
    def __init__(self, context: "LogContext"):
        super().__init__()
        self.context = context

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.fields.items():
            setattr(record, key, value)
        return True


class LogContext:
    """Attach fields to every package log record inside a ``with`` block.

    Example:
        with LogContext(export_id=job.export_id, project="Kitchen"):
            logger.info("Adding piece")  # carries export_id and project
    """

    _current: Optional["LogContext"] = None

    def __init__(self, **fields: Any):
        self.fields = fields
        self._previous: Optional["LogContext"] = None
        self._filter: Optional[logging.Filter] = None

    def __enter__(self) -> "LogContext":
        self._previous = LogContext._current
        LogContext._current = self
        self._filter = _ContextFilter(self)
        for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
            handler.addFilter(self._filter)
        logging.getLogger(PACKAGE_LOGGER).addFilter(self._filter)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._filter:
            package_logger = logging.getLogger(PACKAGE_LOGGER)
            package_logger.removeFilter(self._filter)
            for handler in package_logger.handlers:
                handler.removeFilter(self._filter)
        LogContext._current = self._previous

    @classmethod
    def current(cls) -> Optional["LogContext"]:
        return cls._current


def configure_default_logging(verbose: bool = False) -> logging.Logger:
    """Console logging at INFO, or DEBUG when ``verbose``."""
    return setup_logging(level=logging.DEBUG if verbose else logging.INFO)
