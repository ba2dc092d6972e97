"""Calendar and date utilities."""

from billbook.calendar.dates import (
    GRID_SIZE,
    WEEKDAY_LABELS,
    build_month_grid,
    month_key,
    normalize_to_day_key,
    same_day,
    shift_month,
    start_of_month,
)
from billbook.calendar.formatting import (
    export_filename,
    format_currency,
    format_month,
    format_short,
)

__all__ = [
    "GRID_SIZE",
    "WEEKDAY_LABELS",
    "build_month_grid",
    "export_filename",
    "format_currency",
    "format_month",
    "format_short",
    "month_key",
    "normalize_to_day_key",
    "same_day",
    "shift_month",
    "start_of_month",
]
