"""
Data Models Package

This package contains all Pydantic models used in Household Bills.
Everything kept in the store or written to storage conforms to these schemas.
"""

from billbook.models.bill import (
    AppSnapshot,
    Bill,
    HouseholdSettings,
    Member,
    SnapshotPatch,
    ValidationIssue,
    ValidationResult,
)
from billbook.models.views import (
    CalendarCell,
    DashboardView,
    DayCell,
    DuePartition,
    MonthlyTotals,
)
from billbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Household models
    "AppSnapshot",
    "Bill",
    "HouseholdSettings",
    "Member",
    "SnapshotPatch",
    "ValidationIssue",
    "ValidationResult",
    # View models
    "CalendarCell",
    "DashboardView",
    "DayCell",
    "DuePartition",
    "MonthlyTotals",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
