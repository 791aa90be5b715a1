# services/time_utils.py - Centralized time helpers.
"""
Single source of truth for "now" in the application.

Display times use BOT_TIMEZONE (default UTC). Trade timestamps are
epoch milliseconds so they survive a JSON round-trip unchanged.
"""

import time
from datetime import datetime

from zoneinfo import ZoneInfo

from settings import BOT_TIMEZONE

BOT_TZ = ZoneInfo(BOT_TIMEZONE)

CLOCK_FORMAT = "%H:%M:%S"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_now() -> datetime:
    """Get current time in the bot timezone (timezone-aware)."""
    return datetime.now(BOT_TZ)


def get_timestamp_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def get_clock() -> str:
    """Current wall-clock time, e.g. '14:03:27'. Used for candle and log labels."""
    return get_now().strftime(CLOCK_FORMAT)


def format_ms(timestamp_ms: int | None, fmt: str = DATETIME_FORMAT) -> str:
    """Format epoch milliseconds in the bot timezone."""
    if timestamp_ms is None:
        return ""
    return datetime.fromtimestamp(timestamp_ms / 1000, BOT_TZ).strftime(fmt)


def get_session_stamp() -> str:
    """Filename-safe timestamp for session files."""
    return get_now().strftime("%Y%m%d_%H%M%S")
