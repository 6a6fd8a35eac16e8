"""
Logging for davsync.

All package loggers hang off the ``davsync`` logger, which gets:
- a stderr handler (level from --verbose, DAVSYNC_DEBUG or DAVSYNC_LOG_LEVEL,
  level names coloured on capable terminals)
- a daily file handler in the log directory (``log_dir`` config key,
  default ~/.davsync/logs), or at $DAVSYNC_LOG_FILE, always at DEBUG

Both handlers mask bearer tokens and passwords. Old daily files are pruned
according to ``log_retention_count``.
"""

import logging
import os
import re
import sys
from datetime import date
from pathlib import Path
from typing import Any, Optional, TextIO

from davsync.utils.paths import default_log_dir

ROOT_LOGGER_NAME = "davsync"

# Daily files are named davsync_YYYYMMDD.log
LOG_FILE_PREFIX = "davsync_"

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"
FILE_FORMAT = VERBOSE_FORMAT
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ENV_LOG_LEVEL = "DAVSYNC_LOG_LEVEL"
ENV_DEBUG = "DAVSYNC_DEBUG"
ENV_LOG_FILE = "DAVSYNC_LOG_FILE"

DEFAULT_LOG_RETENTION = 10

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_DISABLED_VALUES = frozenset({"", "none", "disabled", "off"})
_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}

REDACTED = "***"

# Credentials that must never reach a log line
_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[^\s'\"]+", re.IGNORECASE),
    re.compile(r"""(["']?password["']?\s*[:=]\s*["']?)[^\s'",}]+""", re.IGNORECASE),
)


def redact(text: str) -> str:
    """Mask bearer tokens and password values in ``text``."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(rf"\g<1>{REDACTED}", text)
    return text


class RedactingFilter(logging.Filter):
    """Handler filter that rewrites records carrying credentials."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def stream_supports_color(stream: TextIO) -> bool:
    """True for a TTY that is not 'dumb' and when NO_COLOR is unset."""
    isatty = getattr(stream, "isatty", None)
    if isatty is None or not isatty():
        return False
    # https://no-color.org/
    if os.environ.get("NO_COLOR"):
        return False
    return os.environ.get("TERM", "") != "dumb"


class LevelColorFormatter(logging.Formatter):
    """Console formatter that colours the level name and nothing else."""

    LEVEL_COLORS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "35",
    }

    def __init__(
        self, fmt: Optional[str] = None, datefmt: Optional[str] = None, color: bool = False
    ):
        super().__init__(fmt, datefmt)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        code = self.LEVEL_COLORS.get(record.levelno)
        if not self.color or code is None:
            return super().format(record)

        plain = record.levelname
        record.levelname = f"\033[{code}m{plain}\033[0m"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def resolve_log_level(verbose: bool = False) -> int:
    """
    Console log level.

    --verbose and DAVSYNC_DEBUG force DEBUG; otherwise DAVSYNC_LOG_LEVEL
    names the level (WARN and FATAL accepted), defaulting to INFO.
    """
    if verbose or os.environ.get(ENV_DEBUG, "").strip().lower() in _TRUE_VALUES:
        return logging.DEBUG

    name = os.environ.get(ENV_LOG_LEVEL, "INFO").strip().upper()
    level = logging.getLevelName(_LEVEL_ALIASES.get(name, name))
    return level if isinstance(level, int) else logging.INFO


def log_file_name(day: Optional[date] = None) -> str:
    return f"{LOG_FILE_PREFIX}{(day or date.today()):%Y%m%d}.log"


def resolve_log_file(log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Target of the file handler.

    $DAVSYNC_LOG_FILE wins when set ("none", "disabled", "off" or empty turn
    file logging off); otherwise today's file in ``log_dir``.
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        if override.strip().lower() in _DISABLED_VALUES:
            return None
        return Path(override).expanduser()
    return (log_dir or default_log_dir()) / log_file_name()


def setup_logging(
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
    level: Optional[int] = None,
) -> logging.Logger:
    """
    (Re)configure the ``davsync`` logger.

    Args:
        verbose: DEBUG console output with timestamps and source locations
        log_dir: Directory for the daily log file
        log_file: Explicit log file, bypassing log_dir and $DAVSYNC_LOG_FILE
        enable_file_logging: False keeps output on the console only
        use_colors: Colour level names when stderr supports it
        level: Console level; derived from verbose and the environment if None

    Returns:
        The ``davsync`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    redactor = RedactingFilter()
    console_level = level if level is not None else resolve_log_level(verbose)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(
        LevelColorFormatter(
            VERBOSE_FORMAT if verbose else CONSOLE_FORMAT,
            DATE_FORMAT,
            color=use_colors and stream_supports_color(sys.stderr),
        )
    )
    console.addFilter(redactor)
    logger.addHandler(console)

    file_path = None
    if enable_file_logging:
        file_path = log_file or resolve_log_file(log_dir)

    if file_path is not None:
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(file_path, encoding="utf-8")
        except OSError as e:
            logger.warning(f"File logging disabled, cannot open {file_path}: {e}")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
            file_handler.addFilter(redactor)
            logger.addHandler(file_handler)

    # The logger must let through whatever its most verbose handler wants
    logger.setLevel(min(handler.level for handler in logger.handlers))
    return logger


def prune_logs(log_dir: Optional[Path] = None, keep: int = DEFAULT_LOG_RETENTION) -> list[Path]:
    """
    Delete all but the newest ``keep`` daily log files.

    ``keep`` of 0 or less keeps everything. Files not following the daily
    naming scheme are never touched.

    Returns:
        The files that were removed
    """
    if keep <= 0:
        return []

    directory = log_dir or default_log_dir()
    if not directory.is_dir():
        return []

    # YYYYMMDD in the name makes name order the age order
    daily = sorted(directory.glob(f"{LOG_FILE_PREFIX}*.log"), reverse=True)

    removed: list[Path] = []
    for path in daily[keep:]:
        try:
            path.unlink()
        except OSError:
            continue
        removed.append(path)
    return removed


def configure_logging(
    config: dict[str, Any], log_dir: Path, verbose: bool = False
) -> logging.Logger:
    """
    Set up logging from the client configuration.

    Honours the ``verbose`` and ``log_retention_count`` keys; ``log_dir`` is
    the already-resolved log directory (see ClientPaths).
    """
    verbose = verbose or bool(config.get("verbose", False))
    logger = setup_logging(verbose=verbose, log_dir=log_dir)

    removed = prune_logs(log_dir, config.get("log_retention_count", DEFAULT_LOG_RETENTION))
    if removed:
        logger.debug(f"Removed {len(removed)} old log file(s) from {log_dir}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` inside the davsync hierarchy."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


__all__ = [
    "CONSOLE_FORMAT",
    "DATE_FORMAT",
    "DEFAULT_LOG_RETENTION",
    "FILE_FORMAT",
    "LevelColorFormatter",
    "RedactingFilter",
    "VERBOSE_FORMAT",
    "configure_logging",
    "get_logger",
    "log_file_name",
    "prune_logs",
    "redact",
    "resolve_log_file",
    "resolve_log_level",
    "setup_logging",
    "stream_supports_color",
]
