"""Centralized logging configuration."""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: Optional[str] = None,
    level: str | int = logging.INFO,
) -> logging.Logger:
    """Configure and return a logger writing to stdout.

    Args:
        name: Logger name, ``None`` for the root logger
        level: Logging level name or number

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    return logger


def mask_phone(phone: str) -> str:
    """Hide the middle of a phone number: ``09121234567`` -> ``0912 *** 4567``."""
    if not phone or len(phone) < 7:
        return phone
    return f"{phone[:4]} *** {phone[-4:]}"
