"""
Core Data Models for Household Bills

These models define the schemas for everything the store keeps and
everything written to the durable snapshot. They are designed to:
1. Reject malformed records at the boundary (load, import, save attempt)
2. Serialize to the exact JSON shape of the snapshot document
3. Tolerate missing optional fields from older snapshots

DESIGN DECISION: Python attributes are snake_case, the snapshot document
uses camelCase keys. Every model accepts both spellings on input and
`to_document()` always writes the camelCase form.
"""

import copy
from datetime import date, datetime
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def _unique_in_order(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


# =============================================================================
# HOUSEHOLD MODELS
# =============================================================================

class Member(BaseModel):
    """
    A household participant.

    Bills reference members by id (createdBy, paidBy, recipients).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque member id, e.g. 'u1'"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    phone: Optional[str] = Field(
        default=None,
        description="Phone number for future SMS reminders"
    )


class Bill(BaseModel):
    """
    A single financial obligation.

    CRITICAL: `paid_by` is only meaningful while `paid` is true.
    The model clears it whenever a bill is unpaid; the store fills it
    in with the acting member when a bill becomes paid, and repairs
    paid bills that arrive from storage or an import without one.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    # Identity
    id: str = Field(
        ...,
        min_length=1,
        description="Unique bill id, assigned at creation and never changed"
    )

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display title (required)"
    )
    amount: float = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Amount in dollars (required)"
    )
    due_iso: date = Field(
        ...,
        alias="dueISO",
        description="Due date, day precision"
    )
    category: str = Field(
        default="Misc",
        max_length=100,
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=2000,
    )

    # Payment
    paid: bool = False
    created_by: Optional[str] = Field(
        default=None,
        alias="createdBy",
        description="Member id of the creator"
    )
    paid_by: Optional[str] = Field(
        default=None,
        alias="paidBy",
        description="Member id of whoever marked the bill paid"
    )

    # Reminder overrides (fall back to household defaults when absent)
    reminder_days: Optional[int] = Field(
        default=None,
        ge=0,
        alias="reminderDays",
    )
    recipients: Optional[list[str]] = None

    @model_validator(mode='after')
    def clear_paid_by_when_unpaid(self) -> 'Bill':
        """An unpaid bill never carries a payer."""
        if not self.paid and self.paid_by is not None:
            self.paid_by = None
        return self

    @property
    def search_text(self) -> str:
        """Text matched by the search box: title, category and notes."""
        return f"{self.title} {self.category} {self.notes or ''}"

    def to_document(self) -> dict[str, Any]:
        """Convert to the camelCase dict stored in the snapshot."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# SETTINGS AND SNAPSHOT
# =============================================================================

class HouseholdSettings(BaseModel):
    """
    Defaults applied to new bills.

    Bills snapshot `default_reminder_days` and `default_recipients` as
    per-bill overrides when they are created.
    """
    model_config = ConfigDict(populate_by_name=True)

    categories: list[str] = Field(default_factory=list)
    default_reminder_days: int = Field(
        default=1,
        ge=0,
        alias="defaultReminderDays",
    )
    default_recipients: list[str] = Field(
        default_factory=list,
        alias="defaultRecipients",
    )


class AppSnapshot(BaseModel):
    """
    The complete durable unit of application state.

    This is what gets written to local storage on every change, and
    what is exported/imported as a JSON document. There is no version
    field: every field is optional on read (see SnapshotPatch).
    """
    model_config = ConfigDict(populate_by_name=True)

    members: list[Member] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    default_reminder_days: int = Field(
        default=1,
        ge=0,
        alias="defaultReminderDays",
    )
    default_recipients: list[str] = Field(
        default_factory=list,
        alias="defaultRecipients",
    )
    bills: list[Bill] = Field(default_factory=list)

    @field_validator('categories')
    @classmethod
    def dedupe_categories(cls, v: list[str]) -> list[str]:
        """Categories are an ordered set."""
        return _unique_in_order([c.strip() for c in v if c.strip()])

    @property
    def settings(self) -> HouseholdSettings:
        return HouseholdSettings(
            categories=list(self.categories),
            default_reminder_days=self.default_reminder_days,
            default_recipients=list(self.default_recipients),
        )

    def member_ids(self) -> set[str]:
        return {m.id for m in self.members}

    def merged(self, patch: "SnapshotPatch") -> "AppSnapshot":
        """
        Return a copy with every field present in `patch` replaced.

        Fields missing from the patch keep their current values.
        """
        update = copy.deepcopy(patch.present_fields())
        return self.model_copy(update=update, deep=True)

    def to_document(self) -> dict[str, Any]:
        """Convert to the camelCase dict written to storage."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SnapshotPatch(BaseModel):
    """
    A partially present snapshot, as read from storage or an imported file.

    A field is "present" when it is not None. Present fields replace the
    corresponding in-memory values; absent ones leave them alone.
    """
    model_config = ConfigDict(populate_by_name=True)

    members: Optional[list[Member]] = Field(
        default=None,
        min_length=1,
        description="A household always keeps at least one member"
    )
    categories: Optional[list[str]] = None
    default_reminder_days: Optional[int] = Field(
        default=None,
        ge=0,
        alias="defaultReminderDays",
    )
    default_recipients: Optional[list[str]] = Field(
        default=None,
        alias="defaultRecipients",
    )
    bills: Optional[list[Bill]] = None

    @field_validator('categories')
    @classmethod
    def dedupe_categories(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return v
        return _unique_in_order([c.strip() for c in v if c.strip()])

    @model_validator(mode='after')
    def unique_bill_ids(self) -> 'SnapshotPatch':
        """Exactly one bill per id."""
        if self.bills:
            ids = [b.id for b in self.bills]
            if len(ids) != len(set(ids)):
                raise ValueError("Duplicate bill ids in snapshot")
        return self

    def present_fields(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if getattr(self, name) is not None
        }

    @property
    def is_empty(self) -> bool:
        return not self.present_fields()


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'unknown_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating user input before a mutation.

    Errors block the mutation, warnings are shown but don't block.
    """

    subject: str = Field(
        ...,
        description="What was validated, e.g. 'bill' or 'settings'"
    )
    validated_at: datetime = Field(
        default_factory=datetime.now
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]

    def summary(self) -> str:
        """Error messages joined for display in a single alert."""
        return "; ".join(i.message for i in self.issues if i.severity == "error")
