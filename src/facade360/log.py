"""Logging configuration for the CLIs."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import coloredlogs

from facade360.config import LOG_FILE, LOG_LEVEL

DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"

LEVEL_STYLES = {
    "debug": {"color": "cyan"},
    "info": {"color": "green"},
    "warning": {"color": "yellow", "bold": True},
    "error": {"color": "red", "bold": True},
    "critical": {"color": "red", "bold": True, "background": "white"},
}


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
    format_string: str | None = None,
) -> None:
    """Configure the root logger with a colored console handler.

    Args:
        level: Logging level name; defaults to FACADE360_LOG_LEVEL.
        log_file: Optional rotating log file; defaults to FACADE360_LOG_FILE.
        max_bytes: Size at which the log file is rotated.
        backup_count: Number of rotated files to keep.
        format_string: Custom format for both handlers.
    """
    level = (level or LOG_LEVEL).upper()
    log_file = log_file or LOG_FILE
    format_string = format_string or DEFAULT_FORMAT

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    coloredlogs.install(
        level=level,
        logger=root_logger,
        fmt=format_string,
        level_styles=LEVEL_STYLES,
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(format_string))
        root_logger.addHandler(file_handler)

    # Suppress verbose third-party loggers
    for name in ("PIL", "httpx", "httpcore", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)
