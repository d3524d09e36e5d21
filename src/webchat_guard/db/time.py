# src/webchat_guard/db/time.py
"""Time utilities for database models."""

import time
from collections.abc import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Return the current UNIX time in whole milliseconds."""
    return int(time.time() * 1000)
