import math
import os
import time

from ikanban.errors import InvalidInputError


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def normalize_id(value: str | None, label: str) -> str:
    normalized = (value or "").strip()
    if not normalized:
        raise InvalidInputError(f"{label} is required.")
    return normalized


def normalize_directory(directory: str | None, label: str) -> str:
    """Trim and resolve a directory to an absolute, normalized path."""
    normalized = (directory or "").strip()
    if not normalized:
        raise InvalidInputError(f"{label} is required.")
    return os.path.abspath(normalized)


def normalize_timestamp(timestamp: float, label: str = "Timestamp") -> int:
    if (
        isinstance(timestamp, bool)
        or not isinstance(timestamp, int | float)
        or not math.isfinite(timestamp)
        or timestamp <= 0
    ):
        raise InvalidInputError(f"{label} must be a positive finite number.")
    return int(timestamp)
