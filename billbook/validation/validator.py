"""
Two-Stage Input Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (title)
- Numeric checks (amount is a finite number >= 0)
- Date format (due date is a real calendar date)
- Reminder lead time is a non-negative whole number

STAGE 2 - SEMANTIC VALIDATION:
- Category is one of the configured categories
- Member references (creator, payer, recipients) exist

Stage 1 problems are errors and block the save. Stage 2 problems are
warnings only: imported data can legitimately reference categories or
members that no longer exist.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the store refuses to mutate on errors.
"""

import math
import re
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from billbook.calendar import normalize_to_day_key
from billbook.models.bill import (
    AppSnapshot,
    Bill,
    ValidationIssue,
    ValidationResult,
)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


class InputValidationError(Exception):
    """
    User input was rejected; in-memory state is unchanged.

    The attached ValidationResult lists every issue found.
    """

    def __init__(self, result: ValidationResult):
        super().__init__(result.summary() or f"Invalid {result.subject}")
        self.result = result


def normalize_bill_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Map document keys (dueISO, paidBy, ...) to attribute names.

    Keys that aren't Bill fields are dropped.
    """
    by_alias = {
        (field.alias or name): name for name, field in Bill.model_fields.items()
    }
    normalized = {}
    for key, value in data.items():
        if key in Bill.model_fields:
            normalized[key] = value
        elif key in by_alias:
            normalized[by_alias[key]] = value
    return normalized


def parse_amount(value: Any) -> Optional[float]:
    """
    Interpret user input as an amount.

    Returns None for anything that isn't a number (booleans included).
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    return None


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
    )


def _warning(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
    )


class BillValidator:
    """
    Validates bill and settings input against the current snapshot.

    Stage 1: Schema validation (needs nothing but the input)
    Stage 2: Semantic validation (needs the snapshot for references)
    """

    def validate_bill(
        self,
        data: Mapping[str, Any],
        snapshot: Optional[AppSnapshot] = None,
    ) -> ValidationResult:
        """
        Validate a bill about to be created or saved.

        Args:
            data: Bill fields by attribute name (see normalize_bill_fields)
            snapshot: Current state, for category/member checks.
                      If None, semantic validation is skipped.
        """
        issues = self._validate_bill_schema(data)
        if snapshot is not None:
            issues.extend(self._validate_bill_semantics(data, snapshot))
        return ValidationResult(subject="bill", issues=issues)

    def _validate_bill_schema(self, data: Mapping[str, Any]) -> list[ValidationIssue]:
        """
        Stage 1: Schema validation.

        Returns: list_of_issues
        """
        issues = []

        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            issues.append(_error("title", "missing", "Please enter a title."))

        amount = parse_amount(data.get("amount"))
        if amount is None or not math.isfinite(amount):
            issues.append(_error("amount", "invalid_value", "Invalid amount."))
        elif amount < 0:
            issues.append(_error(
                "amount", "invalid_value", "Amount cannot be negative."
            ))

        due = data.get("due_iso")
        if due is None:
            issues.append(_error("due_iso", "missing", "Please pick a due date."))
        else:
            try:
                normalize_to_day_key(due)
            except (TypeError, ValueError):
                issues.append(_error(
                    "due_iso", "invalid_format", f"Invalid due date: {due!r}"
                ))

        reminder_days = data.get("reminder_days")
        if reminder_days is not None:
            issues.extend(self._reminder_days_issues(reminder_days))

        recipients = data.get("recipients")
        if recipients is not None and (
            isinstance(recipients, str)
            or not all(isinstance(r, str) for r in recipients)
        ):
            issues.append(_error(
                "recipients", "invalid_format", "Recipients must be a list of member ids."
            ))

        return issues

    def _validate_bill_semantics(
        self,
        data: Mapping[str, Any],
        snapshot: AppSnapshot,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation. Produces warnings only.
        """
        issues = []
        known_members = snapshot.member_ids()

        category = data.get("category")
        if category and snapshot.categories and category not in snapshot.categories:
            issues.append(_warning(
                "category", "unknown_category",
                f"Category '{category}' is not in your category list",
            ))

        for field in ("created_by", "paid_by"):
            member_id = data.get(field)
            if member_id and member_id not in known_members:
                issues.append(_warning(
                    field, "unknown_reference", f"Unknown member: {member_id}"
                ))

        recipients = data.get("recipients")
        if isinstance(recipients, (list, tuple)):
            unknown = [r for r in recipients if r not in known_members]
            if unknown:
                issues.append(_warning(
                    "recipients", "unknown_reference",
                    f"Unknown recipients: {', '.join(map(str, unknown))}",
                ))

        return issues

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def _reminder_days_issues(value: Any) -> list[ValidationIssue]:
        if isinstance(value, bool) or not isinstance(value, int):
            return [_error(
                "reminder_days", "invalid_value",
                "Reminder lead time must be a whole number of days.",
            )]
        if value < 0:
            return [_error(
                "reminder_days", "invalid_value",
                "Reminder lead time cannot be negative.",
            )]
        return []

    def validate_reminder_days(self, value: Any) -> ValidationResult:
        return ValidationResult(
            subject="settings",
            issues=self._reminder_days_issues(value),
        )

    def validate_recipients(
        self,
        member_ids: Iterable[str],
        snapshot: AppSnapshot,
    ) -> ValidationResult:
        """Default recipients must all be existing members."""
        known = snapshot.member_ids()
        unknown = [m for m in member_ids if m not in known]
        issues = []
        if unknown:
            issues.append(_error(
                "default_recipients", "unknown_reference",
                f"Unknown members: {', '.join(unknown)}",
            ))
        return ValidationResult(subject="settings", issues=issues)

    def validate_category(self, name: Any) -> ValidationResult:
        issues = []
        if not isinstance(name, str) or not name.strip():
            issues.append(_error("categories", "missing", "Category name is empty."))
        elif len(name.strip()) > 100:
            issues.append(_error("categories", "invalid_value", "Category name is too long."))
        return ValidationResult(subject="settings", issues=issues)

    def validate_member(
        self,
        name: Any,
        phone: Optional[str] = None,
    ) -> ValidationResult:
        """Member names are required; phones, when given, must be E.164."""
        issues = []
        if not isinstance(name, str) or not name.strip():
            issues.append(_error("name", "missing", "Please enter a name."))
        if phone is not None and phone.strip() and not E164_PATTERN.match(phone.strip()):
            issues.append(_error(
                "phone", "invalid_format",
                "Phone must be in E.164 format, e.g. +15551234567.",
            ))
        return ValidationResult(subject="member", issues=issues)
