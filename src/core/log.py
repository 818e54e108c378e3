"""
Logging setup for the ledger processor.
"""

import logging
import os
import re
import sys
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Optional, Union

from colorama import Back, Fore, Style, init

init(autoreset=True)


TRACE_LEVEL_NUM = logging.DEBUG - 5

if not hasattr(logging, "TRACE"):
    logging.TRACE = TRACE_LEVEL_NUM
    logging.addLevelName(logging.TRACE, "TRACE")


class LogLevel(StrEnum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def level(self) -> int:
        """Maps the LogLevel enum to the corresponding logging module constant."""
        if self is LogLevel.TRACE:
            return TRACE_LEVEL_NUM
        return logging.getLevelName(self.value)


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name."""

    LEVEL_COLORS = {
        LogLevel.TRACE: Fore.MAGENTA,
        LogLevel.DEBUG: Fore.CYAN,
        LogLevel.INFO: Fore.GREEN,
        LogLevel.WARNING: Fore.YELLOW,
        LogLevel.ERROR: Fore.RED,
        LogLevel.CRITICAL: Fore.RED + Back.WHITE,
    }

    def format(self, record: logging.LogRecord) -> str:
        try:
            color = self.LEVEL_COLORS.get(LogLevel(record.levelname), Fore.WHITE)
        except ValueError:
            color = Fore.WHITE

        # Work on a copy so other handlers see the plain level name
        record_copy = logging.makeLogRecord(record.__dict__)
        record_copy.levelname = (
            f"{color}{Style.BRIGHT}{record.levelname}{Style.RESET_ALL}"
        )
        return super().format(record_copy)


_DEFAULT_COLORED_FORMAT = (
    f"{Fore.BLUE}%(asctime)s.%(msecs)03d{Style.RESET_ALL} | "
    f"%(levelname)s | "
    f"{Fore.BLUE}%(name)s{Style.RESET_ALL}:"
    f"{Fore.BLUE}%(funcName)s{Style.RESET_ALL}:"
    f"{Fore.BLUE}%(lineno)d{Style.RESET_ALL} - "
    f"%(message)s"
)
_DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*m")

# Longer sequences are summarised when arguments are logged
_MAX_LOGGED_SEQUENCE = 30


@dataclass
class _LoggingState:
    log_file_path: Optional[Path]


_STATE = _LoggingState(
    log_file_path=Path(os.environ["LOG_FILE"]).expanduser()
    if os.getenv("LOG_FILE")
    else None
)
_MANAGED_LOGGERS: set[logging.Logger] = set()


def _strip_ansi(value: str) -> str:
    return _ANSI_ESCAPE_RE.sub("", value)


def _resolve_level() -> LogLevel:
    env_log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    try:
        return LogLevel(env_log_level)
    except ValueError:
        sys.stdout.write(
            f"{Fore.YELLOW}WARNING{Style.RESET_ALL}: "
            f"Invalid LOG_LEVEL '{env_log_level}' specified. Defaulting to INFO level.\n"
        )
        return LogLevel.INFO


def _build_handlers(level: int) -> list[logging.Handler]:
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(
        ColoredFormatter(_DEFAULT_COLORED_FORMAT, datefmt=_DEFAULT_DATE_FORMAT)
    )
    handlers: list[logging.Handler] = [stream_handler]

    log_path = _STATE.log_file_path
    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8", mode="a")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(
                _strip_ansi(_DEFAULT_COLORED_FORMAT), datefmt=_DEFAULT_DATE_FORMAT
            )
        )
        handlers.append(file_handler)

    return handlers


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    for handler in _build_handlers(logger.level or logging.INFO):
        logger.addHandler(handler)


def configure_logging(log_file_path: Optional[Union[str, os.PathLike[str]]] = None):
    """Point every managed logger at an additional log file.

    Parameters
    ----------
    log_file_path: Optional[Union[str, os.PathLike[str]]]
        When provided, logs are additionally written to this file.
        Passing None disables file logging.
    """
    _STATE.log_file_path = Path(log_file_path).expanduser() if log_file_path else None
    for logger in _MANAGED_LOGGERS:
        _reset_handlers(logger)


def get_logger(name: str) -> logging.Logger:
    """Return a logger writing coloured output to stdout.

    The level is read from the LOG_LEVEL environment variable and defaults to
    INFO. Loggers returned here follow later ``configure_logging`` calls.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level().level)
    _reset_handlers(logger)
    _MANAGED_LOGGERS.add(logger)
    return logger


def sanitize_for_log(value: Any) -> Any:
    """Summarise long sequences so a logged payload stays readable."""
    if isinstance(value, dict):
        return {key: sanitize_for_log(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        if len(value) > _MAX_LOGGED_SEQUENCE:
            return f"Array({len(value)})"
        return [sanitize_for_log(item) for item in value]
    return value
