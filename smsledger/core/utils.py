"""Shared utility functions for the SMS ledger sync project."""

import logging
import math
import time
from datetime import UTC, datetime
from pathlib import Path

import colorlog

MAX_TIMESTAMP = 2**63 - 1
MIN_TIMESTAMP = -(2**63)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a colorized format for the project."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def ensure_dir(path: str | Path) -> None:
    """Ensure a directory exists (like mkdir -p)."""
    Path(path).mkdir(parents=True, exist_ok=True)


def safe_cast(val: object, to_type: type, default: object = None) -> object:
    """Safely cast a value to a type, returning default on failure."""
    try:
        return to_type(val)
    except (ValueError, TypeError, OverflowError):
        return default


def coerce_timestamp(value: object) -> int | None:
    """Coerce a message timestamp (int, float or numeric string) to integer milliseconds.

    Returns None when the value is missing, non-numeric, not finite or outside the signed 64-bit range a database
    INTEGER column can hold.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if MIN_TIMESTAMP <= value <= MAX_TIMESTAMP else None
    if isinstance(value, str):
        value = value.strip()
        as_int = safe_cast(value, int)
        if as_int is not None:
            return as_int if MIN_TIMESTAMP <= as_int <= MAX_TIMESTAMP else None
    number = safe_cast(value, float)
    if number is None or not math.isfinite(number):
        return None
    as_int = int(number)
    return as_int if MIN_TIMESTAMP <= as_int <= MAX_TIMESTAMP else None


def utcnow_iso() -> str:
    """Get the current UTC time as an ISO8601 string."""
    return datetime.now(UTC).isoformat()


def now_ms() -> int:
    """Get the current time as integer epoch milliseconds."""
    return int(time.time() * 1000)
