"""
Date and Calendar Utilities

Pure functions for day keys and the month grid.

A day key is a plain `datetime.date`: two timestamps share a key iff they
fall on the same calendar day in local time. Bills are bucketed and
totalled by day key only, never by time of day.

The month grid is always 6 full weeks (42 cells) starting on the Sunday
on or before the first of the month, whatever the month's length.
"""

from datetime import date, datetime, timedelta
from typing import Union

from billbook.models.views import DayCell

DayLike = Union[date, datetime, str]

GRID_WEEKS = 6
GRID_SIZE = GRID_WEEKS * 7

WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def normalize_to_day_key(value: DayLike) -> date:
    """
    Reduce a date, datetime or ISO string to its calendar day.

    Timezone-aware datetimes are converted to local time first.
    Raises ValueError for anything that isn't a recognisable date.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty date string")
        try:
            return date.fromisoformat(text)
        except ValueError:
            # Full timestamps, e.g. "2024-03-16T09:30:00Z"
            return normalize_to_day_key(datetime.fromisoformat(text))
    raise ValueError(f"Not a date: {value!r}")


def same_day(a: DayLike, b: DayLike) -> bool:
    return normalize_to_day_key(a) == normalize_to_day_key(b)


def start_of_month(value: DayLike) -> date:
    return normalize_to_day_key(value).replace(day=1)


def shift_month(anchor: DayLike, delta: int) -> date:
    """First day of the month `delta` months away from `anchor`."""
    first = start_of_month(anchor)
    index = first.year * 12 + (first.month - 1) + delta
    return date(index // 12, index % 12 + 1, 1)


def month_key(value: DayLike) -> str:
    """Year-month prefix used for monthly totals, e.g. '2024-03'."""
    return normalize_to_day_key(value).strftime("%Y-%m")


def sunday_based_weekday(day: date) -> int:
    """0 for Sunday through 6 for Saturday."""
    return (day.weekday() + 1) % 7


def build_month_grid(anchor: DayLike) -> list[DayCell]:
    """
    Build the 42-cell grid for the month containing `anchor`.

    Cells before the 1st and after the last day of the month are
    marked `in_current_month=False` but are real dates, so bills due
    on them still show up.
    """
    first = start_of_month(anchor)
    offset = (sunday_based_weekday(first) + 7) % 7
    start = first - timedelta(days=offset)

    cells = []
    for i in range(GRID_SIZE):
        day = start + timedelta(days=i)
        cells.append(DayCell(
            date=day,
            in_current_month=(day.year, day.month) == (first.year, first.month),
        ))
    return cells
