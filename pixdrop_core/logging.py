"""
Centralized logging configuration for pixdrop.
Initializes loguru and intercepts standard library logging.
"""

import logging
import sys

from loguru import logger

from pixdrop_core.config import settings


class InterceptHandler(logging.Handler):
    """
    Routes standard library log records into loguru.
    See: https://loguru.readthedocs.io/en/stable/overview.html#entirely-compatible-with-standard-logging
    """

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str | None = None):
    """
    Configures loguru to handle all logs and output them to stdout.
    """
    logger.remove()

    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level or settings.LOG_LEVEL,
        colorize=True,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in ["uvicorn", "uvicorn.access", "uvicorn.error", "fastapi", "PIL"]:
        _logger = logging.getLogger(name)
        _logger.handlers = [InterceptHandler()]
        _logger.propagate = False

    # Pillow is chatty at DEBUG while probing formats
    logging.getLogger("PIL").setLevel(logging.INFO)

    logger.info("Logging initialized with Loguru.")
