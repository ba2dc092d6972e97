"""Derived view package."""

from billbook.queries.views import (
    DEFAULT_UPCOMING_LIMIT,
    bucket_by_day,
    build_dashboard,
    filter_by_query,
    monthly_totals,
    partition_by_due_status,
    reminders_due,
    upcoming_list,
)

__all__ = [
    "DEFAULT_UPCOMING_LIMIT",
    "bucket_by_day",
    "build_dashboard",
    "filter_by_query",
    "monthly_totals",
    "partition_by_due_status",
    "reminders_due",
    "upcoming_list",
]
