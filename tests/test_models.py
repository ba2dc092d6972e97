"""
Tests for Household Bills

Test strategy:
1. Unit tests for individual components (models, validators, views)
2. Store and persistence tests run against in-memory storage
3. Nothing touches the real home directory (file tests use tmp_path)
"""

import pytest
from datetime import date

from pydantic import ValidationError

from billbook.models.bill import (
    AppSnapshot,
    Bill,
    Member,
    SnapshotPatch,
    ValidationIssue,
    ValidationResult,
)
from billbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from billbook.audit import AuditLogger
from billbook.validation import (
    BillValidator,
    InputValidationError,
    normalize_bill_fields,
    parse_amount,
)


class TestBillModels:
    """Tests for bill-related Pydantic models."""

    def test_bill_creation(self):
        """Test Bill model creation with attribute names."""
        bill = Bill(
            id="b1",
            title="Internet",
            amount=60,
            due_iso=date(2024, 3, 16),
        )
        assert bill.category == "Misc"
        assert bill.paid is False
        assert bill.reminder_days is None
        assert bill.recipients is None

    def test_bill_from_document_keys(self):
        """Test Bill accepts the camelCase snapshot keys."""
        bill = Bill.model_validate({
            "id": "b2",
            "title": "Rent",
            "amount": 1200,
            "dueISO": "2024-03-05",
            "paid": True,
            "paidBy": "u1",
            "createdBy": "u2",
            "reminderDays": 3,
        })
        assert bill.due_iso == date(2024, 3, 5)
        assert bill.paid_by == "u1"
        assert bill.created_by == "u2"
        assert bill.reminder_days == 3

    def test_unpaid_bill_has_no_payer(self):
        """Test that paid_by is cleared on unpaid bills."""
        bill = Bill(
            id="b1",
            title="Internet",
            amount=60,
            due_iso=date(2024, 3, 16),
            paid=False,
            paid_by="u1",
        )
        assert bill.paid_by is None

    @pytest.mark.parametrize("amount", [-1, float("inf"), float("nan")])
    def test_bad_amount_rejected(self, amount):
        """Test amount must be a finite, non-negative number."""
        with pytest.raises(ValidationError):
            Bill(id="b1", title="X", amount=amount, due_iso=date(2024, 3, 1))

    def test_blank_title_rejected(self):
        """Test title is required after stripping whitespace."""
        with pytest.raises(ValidationError):
            Bill(id="b1", title="   ", amount=1, due_iso=date(2024, 3, 1))

    def test_impossible_date_rejected(self):
        with pytest.raises(ValidationError):
            Bill.model_validate({"id": "b1", "title": "X", "amount": 1, "dueISO": "2024-02-30"})

    def test_to_document(self):
        """Test conversion to the stored JSON shape."""
        bill = Bill(
            id="b1",
            title="Internet",
            amount=60,
            due_iso=date(2024, 3, 16),
            recipients=["u1"],
        )
        assert bill.to_document() == {
            "id": "b1",
            "title": "Internet",
            "amount": 60.0,
            "dueISO": "2024-03-16",
            "category": "Misc",
            "paid": False,
            "recipients": ["u1"],
        }

    def test_search_text(self):
        bill = Bill(
            id="b1", title="Car", amount=1, due_iso=date(2024, 3, 1),
            category="Loan", notes="second car",
        )
        assert "Loan" in bill.search_text
        assert "second car" in bill.search_text


class TestSnapshotModels:
    """Tests for AppSnapshot and SnapshotPatch."""

    def test_categories_deduplicated_in_order(self):
        """Test categories behave as an ordered set."""
        snapshot = AppSnapshot(categories=["Home", "Car", "Home", " ", "Car "])
        assert snapshot.categories == ["Home", "Car"]

    def test_settings_view(self):
        snapshot = AppSnapshot(default_reminder_days=2, default_recipients=["u1"])
        assert snapshot.settings.default_reminder_days == 2
        assert snapshot.settings.default_recipients == ["u1"]

    def test_merged_replaces_only_present_fields(self):
        """Test that absent patch fields keep their values."""
        snapshot = AppSnapshot(
            members=[Member(id="u1", name="You")],
            categories=["Home"],
            default_reminder_days=1,
        )
        merged = snapshot.merged(SnapshotPatch(default_reminder_days=5))

        assert merged.default_reminder_days == 5
        assert merged.categories == ["Home"]
        assert [m.id for m in merged.members] == ["u1"]
        assert snapshot.default_reminder_days == 1

    def test_merged_does_not_share_lists(self):
        """Test the merged snapshot owns its data."""
        patch = SnapshotPatch(categories=["A"])
        merged = AppSnapshot().merged(patch)
        merged.categories.append("B")
        assert patch.categories == ["A"]

    def test_duplicate_bill_ids_rejected(self):
        """Test each bill id appears at most once."""
        bill = {"id": "b1", "title": "X", "amount": 1, "dueISO": "2024-03-01"}
        with pytest.raises(ValidationError, match="Duplicate bill ids"):
            SnapshotPatch.model_validate({"bills": [bill, bill]})

    def test_empty_patch(self):
        assert SnapshotPatch().is_empty
        assert not SnapshotPatch(bills=[]).is_empty

    def test_negative_reminder_rejected(self):
        with pytest.raises(ValidationError):
            SnapshotPatch.model_validate({"defaultReminderDays": -1})

    def test_patch_cannot_empty_household(self):
        """Test a present member list needs at least one member."""
        with pytest.raises(ValidationError):
            SnapshotPatch.model_validate({"members": []})


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.BILL_CREATED,
            description="Bill created",
        )
        assert event.event_type == AuditEventType.BILL_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            description="Setting updated",
            details={"setting": "defaultReminderDays", "value": 2},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "settings_updated"
        assert log_dict["details"]["value"] == 2

    def test_audit_event_builder_bill_created(self):
        """Test AuditEventBuilder.bill_created."""
        event = AuditEventBuilder.bill_created(
            bill_id="b1",
            title="Internet",
            amount=60.0,
            actor_id="u1",
        )
        assert event.event_type == AuditEventType.BILL_CREATED
        assert event.entity_id == "b1"
        assert event.actor_id == "u1"
        assert event.is_user_action is True

    def test_audit_event_builder_snapshot_loaded(self):
        """Test a load that skipped fields is a warning."""
        clean = AuditEventBuilder.snapshot_loaded(fields=["bills"], skipped=[])
        partial = AuditEventBuilder.snapshot_loaded(fields=["bills"], skipped=["members"])
        assert clean.severity == AuditSeverity.INFO
        assert partial.severity == AuditSeverity.WARNING

    def test_audit_logger_history_is_bounded(self):
        """Test the in-memory history keeps only the newest events."""
        audit_logger = AuditLogger(history_size=3)
        for i in range(5):
            audit_logger.log(AuditEventBuilder.bill_deleted(f"b{i}", f"Bill {i}"))

        recent = audit_logger.recent_events()
        assert [e.entity_id for e in recent] == ["b4", "b3", "b2"]
        assert len(audit_logger.recent_events(limit=1)) == 1

        audit_logger.clear()
        assert audit_logger.recent_events() == []

    def test_audit_logger_survives_log_failure(self):
        """Test a failing log sink is reported through the logger, not raised."""
        class BrokenLogger:
            def __init__(self):
                self.errors = []

            def info(self, *args, **kwargs):
                raise RuntimeError("disk full")

            def error(self, event, **kwargs):
                self.errors.append((event, kwargs))

        audit_logger = AuditLogger()
        broken = BrokenLogger()
        audit_logger._logger = broken
        event = AuditEventBuilder.bill_deleted("b1", "Internet")

        assert audit_logger.log(event) is False
        assert broken.errors[0][0] == "audit_log_failed"
        assert broken.errors[0][1]["error"] == "disk full"
        assert audit_logger.recent_events() == [event]


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            subject="bill",
            issues=[
                ValidationIssue(
                    field="title",
                    issue_type="missing",
                    message="Please enter a title.",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.is_valid is False
        assert result.error_count == 1
        assert result.summary() == "Please enter a title."

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            subject="bill",
            issues=[
                ValidationIssue(
                    field="category",
                    issue_type="unknown_category",
                    message="Category 'Boats' is not in your category list",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.warnings == ["Category 'Boats' is not in your category list"]

    def test_severity_is_restricted(self):
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestBillValidator:
    """Tests for the two-stage bill validator."""

    @pytest.fixture
    def validator(self):
        return BillValidator()

    def test_valid_bill(self, validator, snapshot):
        """Test a complete bill passes both stages."""
        result = validator.validate_bill(
            {"title": "Internet", "amount": 60, "due_iso": "2024-03-16", "category": "Internet"},
            snapshot,
        )
        assert result.is_valid
        assert result.issues == []

    def test_all_schema_errors_reported(self, validator):
        """Test every broken field is reported at once."""
        result = validator.validate_bill({"title": "", "amount": "abc", "due_iso": None})
        fields = {i.field for i in result.issues}
        assert fields == {"title", "amount", "due_iso"}
        assert result.error_count == 3

    def test_unknown_references_are_warnings(self, validator, snapshot):
        """Test semantic problems never block a save."""
        result = validator.validate_bill(
            {
                "title": "X",
                "amount": 1,
                "due_iso": date(2024, 3, 1),
                "category": "Boats",
                "created_by": "ghost",
                "recipients": ["u1", "u9"],
            },
            snapshot,
        )
        assert result.is_valid
        assert len(result.warnings) == 3

    def test_recipients_must_be_a_list(self, validator):
        result = validator.validate_bill(
            {"title": "X", "amount": 1, "due_iso": "2024-03-01", "recipients": "u1"}
        )
        assert result.has_errors

    def test_member_phone_format(self, validator):
        assert validator.validate_member("Kid", "+15550001111").is_valid
        assert validator.validate_member("Kid", None).is_valid
        assert not validator.validate_member("Kid", "555 0001").is_valid
        assert not validator.validate_member("", None).is_valid

    def test_input_validation_error_message(self, validator):
        result = validator.validate_bill({"title": "", "amount": -1, "due_iso": "2024-03-01"})
        error = InputValidationError(result)
        assert str(error) == "Please enter a title.; Amount cannot be negative."
        assert error.result is result


class TestInputHelpers:
    """Tests for amount parsing and key normalization."""

    @pytest.mark.parametrize("value,expected", [
        (60, 60.0),
        (12.5, 12.5),
        ("45.50", 45.5),
        (" 1,200 ", 1200.0),
        ("", None),
        ("abc", None),
        (None, None),
        (True, None),
        ([1], None),
    ])
    def test_parse_amount(self, value, expected):
        """Test amount parsing from form input."""
        assert parse_amount(value) == expected

    def test_normalize_bill_fields(self):
        """Test document keys map to attributes and extras are dropped."""
        fields = normalize_bill_fields({
            "dueISO": "2024-03-16",
            "paidBy": "u1",
            "title": "Internet",
            "colour": "blue",
        })
        assert fields == {"due_iso": "2024-03-16", "paid_by": "u1", "title": "Internet"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
