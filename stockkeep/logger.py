import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from . import settings

CONSOLE_FORMAT = "%(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILENAME = "stockkeep.log"
MAX_LOG_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUPS = 3


def _attach(logger: logging.Logger, handler: logging.Handler, fmt: str, level) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)


def setup_logger(
    name: Optional[str] = None,
    log_level: Union[int, str, None] = None,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Configures `name` with a minimal console handler and a rotating log file
    under LOG_DIR. The level defaults to settings.LOG_LEVEL.
    A logger that already has handlers is returned untouched.
    """
    level = log_level if log_level is not None else settings.LOG_LEVEL
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    log_dir = log_dir or settings.LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    _attach(logger, logging.StreamHandler(sys.stdout), CONSOLE_FORMAT, level)
    _attach(
        logger,
        RotatingFileHandler(
            log_dir / LOG_FILENAME, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        ),
        FILE_FORMAT,
        level,
    )
    return logger
