"""
Logging configuration: rich console output plus an optional plain log file.
"""

import logging
from pathlib import Path

from rich.logging import RichHandler

from .config.schema import LoggingConfig

PACKAGE_LOGGER = "dme_extraction"


def configure_logging(config: LoggingConfig) -> logging.Logger:
    """Attach handlers to the package logger according to ``config``.

    Safe to call more than once; previously installed handlers are replaced.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if config.console:
        handler = RichHandler(
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    if config.file:
        log_path = Path(config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
        )
        logger.addHandler(file_handler)

    return logger
