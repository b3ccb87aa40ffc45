import sys
from pathlib import Path

from loguru import logger

import config

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

_configured = False


def setup_logging(level: str = None, log_dir: str = None):
    """Replace loguru's default sink with the app's console (and optional file) sinks.

    Safe to call more than once; only the first call installs sinks.
    """
    global _configured
    if _configured:
        return logger

    level = level or config.LOG_LEVEL
    log_dir = log_dir or config.LOG_DIR

    logger.remove()
    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=level)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / "app.log",
            rotation="500 MB",
            retention="10 days",
            compression="zip",
            format=FILE_FORMAT,
            level=level,
        )
        logger.add(
            log_path / "error.log",
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            format=FILE_FORMAT,
            level="ERROR",
        )

    _configured = True
    return logger
