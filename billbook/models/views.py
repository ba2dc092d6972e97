"""
Derived View Models

Read-only shapes produced by the view engine for the presentation layer.
None of these are persisted; they are rebuilt on every render.
"""

import datetime as dt

from pydantic import BaseModel, Field

from billbook.models.bill import Bill


class DayCell(BaseModel):
    """One cell of the 6x7 month grid, before bills are attached."""

    date: dt.date
    in_current_month: bool


class CalendarCell(BaseModel):
    """A grid cell with the bills due that day."""

    date: dt.date
    in_current_month: bool
    is_today: bool = False
    bills: list[Bill] = Field(default_factory=list)


class DuePartition(BaseModel):
    """Unpaid bills split around a reference day. Paid bills are in neither list."""

    overdue: list[Bill] = Field(default_factory=list)
    upcoming: list[Bill] = Field(default_factory=list)


class MonthlyTotals(BaseModel):
    """Sums over the bills due in one calendar month."""

    month_key: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="Year-month, e.g. '2024-03'"
    )
    total: float = Field(default=0.0, ge=0)
    paid: float = Field(default=0.0, ge=0)
    unpaid: float = Field(default=0.0, ge=0)
    bill_count: int = Field(default=0, ge=0)


class DashboardView(BaseModel):
    """
    Everything the calendar page needs for one render.

    The grid and the overdue/upcoming lists honour the search query;
    the monthly totals always cover every bill of the month.
    """

    month_label: str
    month_key: str
    query: str = ""
    cells: list[CalendarCell] = Field(default_factory=list)
    upcoming: list[Bill] = Field(default_factory=list)
    overdue: list[Bill] = Field(default_factory=list)
    totals: MonthlyTotals
    reminders_due: list[Bill] = Field(default_factory=list)

    @property
    def overdue_count(self) -> int:
        return len(self.overdue)
