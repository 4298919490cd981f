import math
import re
from datetime import date, datetime, time
from typing import Optional

PLACEHOLDER = "--:--"

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_TIME_RE = re.compile(r"([01]\d|2[0-3]):[0-5]\d")


def parse_date(date_str: str) -> date:
    """Strict zero-padded YYYY-MM-DD. Raises ValueError otherwise."""
    if not isinstance(date_str, str) or not _DATE_RE.fullmatch(date_str):
        raise ValueError(f"Expected YYYY-MM-DD, got {date_str!r}")
    return datetime.strptime(date_str, "%Y-%m-%d").date()


def combine_date_time(date_str: str, time_str: str) -> datetime:
    """Attach a wall-clock HH:mm to a date. Naive local time, no tz conversion."""
    hours, minutes = divmod(time_to_minutes(time_str), 60)
    return datetime.combine(parse_date(date_str), time(hours, minutes))


def time_to_minutes(time_str: str) -> int:
    # Zero-padded HH:mm only, so string order matches clock order
    if not isinstance(time_str, str) or not _TIME_RE.fullmatch(time_str):
        raise ValueError(f"Expected HH:mm, got {time_str!r}")
    hours, minutes = time_str.split(":")
    return int(hours) * 60 + int(minutes)


def _clock(total_minutes: int) -> str:
    hours, minutes = divmod(total_minutes % (24 * 60), 60)
    suffix = "AM" if hours < 12 else "PM"
    return f"{hours % 12 or 12}:{minutes:02d} {suffix}"


def minutes_to_time(minutes: Optional[float]) -> str:
    if minutes is None or math.isnan(minutes) or minutes < 0:
        return PLACEHOLDER
    return _clock(int(math.floor(minutes + 0.5)))


def format_time(time_str: Optional[str]) -> str:
    if not time_str:
        return PLACEHOLDER
    try:
        return _clock(time_to_minutes(time_str))
    except ValueError:
        return PLACEHOLDER


def time_axis_label(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    return f"{hours:02d}:{mins:02d}"
