"""Loguru setup for the engine and the CLI.

The only stdlib loggers that matter here belong to the S3 client stack; they
are routed into loguru at WARNING so remote sync failures show up next to
the engine's own messages.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - {message}"

_S3_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


_STDLIB_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class _ToLoguru(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        level: str | int = record.levelname if record.levelname in _STDLIB_LEVELS else record.levelno
        logger.opt(exception=record.exc_info).log(level, "[{}] {}", record.name, record.getMessage())


def setup_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with one stderr sink at *level*."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_FORMAT)

    handler = _ToLoguru()
    for name in _S3_LOGGERS:
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [handler]
        stdlib_logger.setLevel(logging.WARNING)
        stdlib_logger.propagate = False
