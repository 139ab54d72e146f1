"""
Logging setup for hosts embedding the engine.

- <log_dir>/system.log: INFO and above
- <log_dir>/error.log: ERROR and above
- console: WARNING and above by default

Library modules only call get_logger(); nothing is emitted until the host
calls setup_logging().
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER = "rhythm_scheduler"

MAX_BYTES = 5 * 1024 * 1024  # 5MB
BACKUP_COUNT = 3


def setup_logging(
    log_level: int = logging.INFO,
    console_level: int = logging.WARNING,
    log_dir: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Attach handlers to the package logger.

    Args:
        log_level: level for the file handlers
        console_level: level for stderr output
        log_dir: directory for rotating log files; console only when None

    Returns:
        the configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    file_format = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_format = logging.Formatter("[%(levelname)s] %(message)s")

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        system_handler = RotatingFileHandler(
            log_dir / "system.log",
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        system_handler.setLevel(log_level)
        system_handler.setFormatter(file_format)
        logger.addHandler(system_handler)

        error_handler = RotatingFileHandler(
            log_dir / "error.log",
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_format)
        logger.addHandler(error_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger or a child such as ``rhythm_scheduler.optimizer``."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logging.getLogger(ROOT_LOGGER)
