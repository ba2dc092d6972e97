"""Display formatting for amounts and dates (US English)."""

from datetime import date

from billbook.calendar.dates import DayLike, normalize_to_day_key

EXPORT_FILENAME_TEMPLATE = "bills-{day}.json"


def format_currency(amount: float, symbol: str = "$") -> str:
    """Format like `$1,200.00`; negatives as `-$5.00`."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_month(anchor: DayLike) -> str:
    """e.g. 'March 2024'."""
    day = normalize_to_day_key(anchor)
    return f"{day.strftime('%B')} {day.year}"


def format_short(value: DayLike) -> str:
    """e.g. 'Mar 16'."""
    day = normalize_to_day_key(value)
    return f"{day.strftime('%b')} {day.day}"


def export_filename(today: date) -> str:
    return EXPORT_FILENAME_TEMPLATE.format(day=today.isoformat())
