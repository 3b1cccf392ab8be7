"""Centralized logging configuration for the creeble package.

Configures the 'creeble' logger with console and optional rotating file
handlers. The library never calls this on import; applications (and the
CLI) opt in.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, Union

PACKAGE_LOGGER = "creeble"
DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = None
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3


def resolve_level(log_level: Union[int, str]) -> int:
    """Accepts logging constants or names such as 'debug' / 'WARNING'."""
    if isinstance(log_level, int):
        return log_level
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    return level


def setup_logging(
    log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE
) -> logging.Logger:
    """Configures the package logger.

    Handlers attached by a previous call are replaced, so calling this twice
    does not duplicate output.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG or 'info').
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output, rotated at 5 MB.

    Returns:
        The configured 'creeble' logger.
    """
    level = resolve_level(log_level)
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)

    # stderr keeps stdout clean for command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUP_COUNT,
                encoding='utf-8',
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)
            package_logger.info(f"Logging to file: {log_file}")
        except OSError as e:
            package_logger.error(f"Failed to set up file logging to {log_file}: {e}", exc_info=True)

    package_logger.debug(f"Logging configured. Level={logging.getLevelName(level)}")
    return package_logger
