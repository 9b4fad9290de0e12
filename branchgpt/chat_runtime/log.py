"""Loguru setup for the chat runtime.

The turn coordinator and pydantic-ai log through stdlib ``logging``; those
records are forwarded into loguru so every line goes to one sink.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

# Provider SDKs and their HTTP clients; only warnings are surfaced.
QUIET_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "urllib3", "anthropic", "openai", "google_genai")


class _InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru, keeping the original call site."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO") -> None:
    """Replace loguru's handlers with a single stderr sink at *level*."""
    level = level.upper()
    logger.configure(handlers=[{"sink": sys.stderr, "level": level, "format": LOG_FORMAT}])
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logger.debug("Logging configured at {}", level)
