"""
Logging configuration for Artisync.

Console output goes through Rich unless a plain console is configured. An
optional file handler keeps a plain, parseable log of every sync cycle.
"""

import logging
import sys
import traceback
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "artisync"


class FileFormatter(logging.Formatter):
    """Formatter for file logs - clean and parseable."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def formatException(self, ei: Any) -> str:
        """Render the full traceback on its own lines."""
        return "".join(traceback.format_exception(*ei)).rstrip("\n")


class ConsoleFormatter(logging.Formatter):
    """Plain console format: "level: timestamp - msg", with file:line for errors."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname}: {self.formatTime(record)} - {record.getMessage()}"
        if record.levelno >= logging.ERROR and record.pathname:
            filename = Path(record.pathname).name
            base = f"{record.levelname}: {self.formatTime(record)} - {filename}:{record.lineno} - {record.getMessage()}"
        return base


# Map string level names to logging constants
LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_level(level: str | int) -> int:
    """
    Parse logging level from string or int.

    Args:
        level: Logging level as string (DEBUG, INFO, etc.) or int

    Returns:
        Logging level constant
    """
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level_upper = level.upper()
        if level_upper in LEVEL_MAP:
            return LEVEL_MAP[level_upper]
    # Default to INFO if invalid
    return logging.INFO


def setup_logging(
    level: str | int = logging.INFO,
    log_file: str | Path | None = None,
    format_string: str | None = None,
    file_mode: str = "a",
    console_enabled: bool = True,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Setup logging configuration for Artisync.

    Args:
        level: Logging level as string (DEBUG, INFO, etc.) or int (default: INFO)
        log_file: Optional file path to write logs to (default: None, console only)
        format_string: Optional custom format string for the plain console handler
        file_mode: File mode for file handler - 'a' for append, 'w' for overwrite (default: 'a')
        console_enabled: Whether to enable console logging (default: True)
        use_rich: Whether to use RichHandler for console output (default: True)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    # Only clear handlers from this logger, not root or child loggers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level_int = _parse_level(level)
    logger.setLevel(level_int)

    if console_enabled:
        if use_rich:
            logger.addHandler(
                RichHandler(
                    level=level_int,
                    show_time=True,
                    show_path=True,
                    markup=False,
                    rich_tracebacks=True,
                    tracebacks_show_locals=False,
                    show_level=True,
                    log_time_format="[%X]",
                    omit_repeated_times=False,
                )
            )
        else:
            formatter: logging.Formatter = (
                ConsoleFormatter() if format_string is None else logging.Formatter(format_string)
            )
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level_int)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode=file_mode)
        # File captures everything the logger lets through
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(FileFormatter())
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_config(config: dict[str, Any], project_dir: Path | None = None) -> logging.Logger:
    """
    Setup logging from the ``logging`` section of the Artisync configuration.

    Supported keys: ``level``, ``file``, ``file_enabled``, ``file_mode``,
    ``format``, ``console_enabled`` and ``console_type`` (``rich`` or ``plain``).

    Args:
        config: Full configuration dictionary
        project_dir: Optional project directory for resolving relative log file paths

    Returns:
        Logger instance
    """
    logging_config = config.get("logging") or {}

    level = logging_config.get("level", logging.INFO)
    file_mode = logging_config.get("file_mode", "a")
    format_string = logging_config.get("format")

    # File logging is opt-in: a long-running deployer usually logs to journald
    log_file = None
    if logging_config.get("file_enabled", bool(logging_config.get("file"))):
        log_file = Path(logging_config.get("file") or "logs/artisync.log")
        if project_dir and not log_file.is_absolute():
            log_file = project_dir / log_file

    console_enabled = logging_config.get("console_enabled", True)
    console_type = logging_config.get("console_type", "rich")

    return setup_logging(
        level=level,
        log_file=log_file,
        format_string=format_string,
        file_mode=file_mode,
        console_enabled=console_enabled,
        use_rich=console_type == "rich",
    )


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance under the ``artisync`` hierarchy.

    Args:
        name: Logger name (default: "artisync")

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    # Child loggers reach the handlers installed on "artisync"
    logger.propagate = True
    return logger
