"""
Derived View Engine

DESIGN DECISION: Views are PURE functions of (bills, query, reference day,
month anchor). Nothing here is cached or mutated; the presentation layer
calls these on every render and always sees the current store.

None of these functions reorder or modify the list they are given.
"""

import math
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from billbook.calendar import (
    build_month_grid,
    format_month,
    month_key,
    normalize_to_day_key,
    start_of_month,
)
from billbook.calendar.dates import DayLike
from billbook.models.bill import AppSnapshot, Bill
from billbook.models.views import (
    CalendarCell,
    DashboardView,
    DuePartition,
    MonthlyTotals,
)

DEFAULT_UPCOMING_LIMIT = 6


def filter_by_query(bills: Sequence[Bill], query: Optional[str]) -> list[Bill]:
    """
    Case-insensitive substring search over title, category and notes.

    A blank query returns every bill.
    """
    q = (query or "").strip().lower()
    if not q:
        return list(bills)
    return [b for b in bills if q in b.search_text.lower()]


def bucket_by_day(bills: Iterable[Bill], day: DayLike) -> list[Bill]:
    """All bills due on the given day."""
    key = normalize_to_day_key(day)
    return [b for b in bills if b.due_iso == key]


def partition_by_due_status(
    bills: Iterable[Bill],
    reference_day: DayLike,
) -> DuePartition:
    """
    Split unpaid bills into overdue (due before the reference day) and
    upcoming (due on or after it). Paid bills are dropped.
    """
    today = normalize_to_day_key(reference_day)
    overdue = []
    upcoming = []
    for bill in bills:
        if bill.paid:
            continue
        if bill.due_iso < today:
            overdue.append(bill)
        else:
            upcoming.append(bill)
    return DuePartition(overdue=overdue, upcoming=upcoming)


def monthly_totals(bills: Iterable[Bill], month: DayLike) -> MonthlyTotals:
    """
    Total, paid and unpaid sums for the bills due in a month.

    `month` is a 'YYYY-MM' key or any day inside the month.
    """
    key = month if _is_month_key(month) else month_key(month)
    in_month = [b for b in bills if b.due_iso.isoformat().startswith(key)]

    total = math.fsum(b.amount for b in in_month)
    paid = math.fsum(b.amount for b in in_month if b.paid)
    return MonthlyTotals(
        month_key=key,
        total=total,
        paid=paid,
        unpaid=max(total - paid, 0.0),
        bill_count=len(in_month),
    )


def _is_month_key(value: DayLike) -> bool:
    return (
        isinstance(value, str)
        and len(value) == 7
        and value[4] == "-"
        and value[:4].isdigit()
        and value[5:].isdigit()
    )


def upcoming_list(
    bills: Iterable[Bill],
    reference_day: DayLike,
    limit: int = DEFAULT_UPCOMING_LIMIT,
) -> list[Bill]:
    """
    The next unpaid bills, soonest first.

    Bills due the same day keep their collection order.
    """
    upcoming = partition_by_due_status(bills, reference_day).upcoming
    return sorted(upcoming, key=lambda b: b.due_iso)[:limit]


def reminders_due(
    bills: Iterable[Bill],
    reference_day: DayLike,
    default_days: int,
) -> list[Bill]:
    """
    Unpaid bills whose reminder window is open on the reference day.

    A bill due on D with lead time N is in its window from D - N to D.
    Only reports; nothing is delivered.
    """
    today = normalize_to_day_key(reference_day)
    due = []
    for bill in partition_by_due_status(bills, today).upcoming:
        lead = bill.reminder_days if bill.reminder_days is not None else default_days
        if bill.due_iso - timedelta(days=lead) <= today:
            due.append(bill)
    return sorted(due, key=lambda b: b.due_iso)


def build_dashboard(
    snapshot: AppSnapshot,
    anchor: DayLike,
    query: str = "",
    today: Optional[date] = None,
    upcoming_limit: int = DEFAULT_UPCOMING_LIMIT,
) -> DashboardView:
    """
    Assemble everything the calendar page shows for one month.

    The grid, overdue and upcoming lists use the search-filtered bills;
    monthly totals cover every bill due in the anchor month.
    """
    today = today or date.today()
    first = start_of_month(anchor)
    filtered = filter_by_query(snapshot.bills, query)

    cells = [
        CalendarCell(
            date=cell.date,
            in_current_month=cell.in_current_month,
            is_today=cell.date == today,
            bills=bucket_by_day(filtered, cell.date),
        )
        for cell in build_month_grid(first)
    ]
    partition = partition_by_due_status(filtered, today)

    return DashboardView(
        month_label=format_month(first),
        month_key=month_key(first),
        query=query,
        cells=cells,
        upcoming=upcoming_list(filtered, today, upcoming_limit),
        overdue=partition.overdue,
        totals=monthly_totals(snapshot.bills, first),
        reminders_due=reminders_due(
            filtered, today, snapshot.default_reminder_days
        ),
    )
