"""Logging setup for the gateway.

Two loggers are handed to every service:

- ``console_logger``: progress, cache and rate limiter activity, rendered
  on the terminal by ``rich.logging.RichHandler``.
- ``error_logger``: upstream failures and tracebacks, shown on the same
  terminal.

Both also feed one queue; a ``QueueListener`` thread drains it into the
main log file, so no file write ever happens on the event loop.
``get_loggers`` never raises and degrades to plain stream handlers.
"""

from __future__ import annotations

# print() is reserved for CLI results and for failures of logging itself
import logging
import queue
import sys
import traceback
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from crategate.core.models.gateway_models import AppConfig

__all__ = [
    "CONSOLE_LOGGER_NAME",
    "ERROR_LOGGER_NAME",
    "LEVEL_ABBREV",
    "CompactFormatter",
    "LoggerFilter",
    "SafeQueueListener",
    "create_console_logger",
    "ensure_directory",
    "get_full_log_path",
    "get_loggers",
    "get_shared_console",
]

CONSOLE_LOGGER_NAME = "console_logger"
ERROR_LOGGER_NAME = "error_logger"
CONFIG_LOGGER_NAME = "config"

FILE_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(module)s:%(lineno)d - %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVEL_ABBREV = {
    "DEBUG": "D",
    "INFO": "I",
    "WARNING": "W",
    "ERROR": "E",
    "CRITICAL": "C",
}

_shared: dict[str, Console] = {}


def get_shared_console() -> Console:
    """Return the process-wide Rich console.

    Log lines and CLI JSON output share it so they never interleave.
    """
    return _shared.setdefault("console", Console())


class SafeQueueListener(QueueListener):
    """QueueListener whose ``stop`` may be called more than once."""

    def stop(self) -> None:
        """Flush the queue and join the worker thread if it is running."""
        if getattr(self, "_thread", None) is None:
            return
        try:
            super().stop()
        except (AttributeError, RuntimeError, TypeError) as e:
            print(f"Warning: log listener did not stop cleanly: {e}", file=sys.stderr)


class LoggerFilter:
    """Pass records whose logger is one of ``allowed_loggers`` or a child of one."""

    def __init__(self, allowed_loggers: list[str]) -> None:
        self.allowed_loggers = frozenset(allowed_loggers)

    def filter(self, record: logging.LogRecord) -> bool:
        """Return True for records from an allowed logger tree."""
        root_name = record.name.split(".", 1)[0]
        return root_name in self.allowed_loggers


class CompactFormatter(logging.Formatter):
    """File formatter printing one-letter level names."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str = "%H:%M:%S",
        style: Literal["%", "{", "$"] = "%",
    ) -> None:
        super().__init__(fmt or FILE_LOG_FORMAT, datefmt, style)

    def format(self, record: logging.LogRecord) -> str:
        """Format ``record`` with its level abbreviated."""
        level_name = record.levelname
        record.levelname = LEVEL_ABBREV.get(level_name, level_name[:1])
        try:
            return super().format(record)
        finally:
            # The same record may reach other handlers
            record.levelname = level_name


def ensure_directory(path: str, error_logger: logging.Logger | None = None) -> None:
    """Create ``path`` (and parents) unless it already exists."""
    if not path:
        return
    try:
        Path(path).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        if error_logger is None:
            print(f"ERROR: cannot create directory {path}: {e}", file=sys.stderr)
        else:
            error_logger.exception("Cannot create directory %s", path)


def get_full_log_path(config: AppConfig, relative_path: str, error_logger: logging.Logger | None = None) -> str:
    """Absolute-or-relative log file path under ``logging.logs_base_dir``.

    The file's parent directory is created on the way.
    """
    log_file = Path(config.logging.logs_base_dir) / relative_path
    ensure_directory(str(log_file.parent), error_logger)
    return str(log_file)


def create_console_logger(level: int) -> logging.Logger:
    """Attach a RichHandler to ``console_logger`` once; later calls reuse it."""
    console_logger = logging.getLogger(CONSOLE_LOGGER_NAME)
    if console_logger.handlers:
        return console_logger

    rich_handler = RichHandler(
        level=level,
        console=get_shared_console(),
        show_path=False,
        enable_link_path=False,
        log_time_format="%H:%M:%S",
        markup=False,
    )
    console_logger.addHandler(rich_handler)
    console_logger.setLevel(level)
    console_logger.propagate = False
    return console_logger


def _build_file_listener(config: AppConfig, file_level: int) -> tuple[QueueHandler, SafeQueueListener]:
    file_handler = logging.FileHandler(get_full_log_path(config, config.logging.main_log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(CompactFormatter(datefmt=FILE_DATE_FORMAT))
    file_handler.addFilter(LoggerFilter([CONSOLE_LOGGER_NAME, ERROR_LOGGER_NAME, CONFIG_LOGGER_NAME]))

    records: queue.Queue[logging.LogRecord] = queue.Queue()
    listener = SafeQueueListener(records, file_handler, respect_handler_level=True)
    listener.start()
    return QueueHandler(records), listener


def setup_queue_logging(config: AppConfig, console_logger: logging.Logger) -> tuple[logging.Logger, SafeQueueListener]:
    """Route the console, error and config loggers into the main log file."""
    file_level = logging.getLevelNamesMapping()[config.logging.file_level.value]
    queue_handler, listener = _build_file_listener(config, file_level)

    console_logger.addHandler(queue_handler)
    console_logger.setLevel(min(console_logger.level, file_level))

    error_logger = logging.getLogger(ERROR_LOGGER_NAME)
    if not error_logger.handlers:
        error_logger.addHandler(queue_handler)
        error_logger.handlers.extend(handler for handler in console_logger.handlers if isinstance(handler, RichHandler))
        error_logger.setLevel(file_level)
        error_logger.propagate = False

    logging.getLogger(CONFIG_LOGGER_NAME).addHandler(queue_handler)
    return error_logger, listener


def get_loggers(config: AppConfig) -> tuple[logging.Logger, logging.Logger, SafeQueueListener | None]:
    """Configure logging from the ``logging`` config section.

    Returns:
        Tuple of (console_logger, error_logger, listener); the listener is
        None when setup failed and fallback stream loggers were returned.

    """
    try:
        console_level = logging.getLevelNamesMapping()[config.logging.console_level.value]
        console_logger = create_console_logger(console_level)
        error_logger, listener = setup_queue_logging(config, console_logger)
    except (OSError, ValueError, AttributeError, TypeError, KeyError) as e:
        return create_fallback_loggers(e)

    console_logger.debug("Logging ready: console via Rich, file via queue listener")
    return console_logger, error_logger, listener


def create_fallback_loggers(e: Exception) -> tuple[logging.Logger, logging.Logger, None]:
    """Plain stdout/stderr loggers used when ``get_loggers`` cannot finish."""
    print(f"FATAL ERROR: logging setup failed, using stream loggers: {e}", file=sys.stderr)
    traceback.print_exc(file=sys.stderr)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    fallbacks = []
    for name, stream in (("console_fallback", sys.stdout), ("error_fallback", sys.stderr)):
        fallback = logging.getLogger(name)
        if not fallback.handlers:
            fallback.addHandler(logging.StreamHandler(stream))
        fallbacks.append(fallback)
    return fallbacks[0], fallbacks[1], None
