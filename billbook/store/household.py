"""
Household Store

The one object that owns household state (members, settings, bills).

DESIGN DECISION: All state lives in a single AppSnapshot owned by this
store, and every mutation goes through one of its methods. After each
successful mutation the full snapshot is written through to the injected
SnapshotPersistence. The write is not atomic with the mutation: if it
fails the session carries on in memory and only durability is lost.

CONTRACTS:
- create() and update() validate first; on error nothing changes.
- update() is an upsert: an unknown id is inserted, not rejected.
- toggle_paid() and delete() on an unknown id are silent no-ops.
- A paid bill always has a payer; an unpaid bill never has one.
- Members referenced by any bill cannot be removed.
"""

import re
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Optional, Union
from uuid import uuid4

import structlog
from pydantic import ValidationError

from billbook.audit import AuditLogger
from billbook.calendar import export_filename, normalize_to_day_key
from billbook.models.audit import AuditEvent, AuditEventBuilder
from billbook.models.bill import (
    AppSnapshot,
    Bill,
    HouseholdSettings,
    Member,
    SnapshotPatch,
    ValidationIssue,
    ValidationResult,
)
from billbook.services.persistence import SnapshotPersistence
from billbook.services.storage import InMemorySnapshotStorage
from billbook.store.defaults import FALLBACK_CATEGORY, default_snapshot
from billbook.validation import (
    BillValidator,
    InputValidationError,
    normalize_bill_fields,
    parse_amount,
)

logger = structlog.get_logger(__name__)

UNKNOWN_MEMBER_NAME = "Unknown member"

BillInput = Union[Bill, Mapping[str, Any]]


class MemberInUseError(Exception):
    """A member cannot be removed (still referenced, or the last one)."""

    def __init__(self, member_id: str, message: str):
        super().__init__(message)
        self.member_id = member_id


class HouseholdStore:
    """
    In-memory household state with write-through persistence.

    Usage:
        store = HouseholdStore(persistence=SnapshotPersistence(storage))
        store.rehydrate()
        bill = store.create({"title": "Internet", "amount": 60, "dueISO": "2024-03-16"})
        store.toggle_paid(bill.id)
    """

    def __init__(
        self,
        snapshot: Optional[AppSnapshot] = None,
        persistence: Optional[SnapshotPersistence] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[BillValidator] = None,
        clock: Callable[[], date] = date.today,
    ):
        """
        Args:
            snapshot: Initial state. Defaults to the first-run state
                      without sample bills.
            persistence: Where snapshots are written. If None, state is
                         kept in a throwaway in-memory store.
            audit_logger: Receives an event for every mutation.
            validator: Input validator (a default one is created).
            clock: Returns "today"; injectable for tests.
        """
        self._clock = clock
        self._snapshot = self._with_payers(
            snapshot.model_copy(deep=True)
            if snapshot is not None
            else default_snapshot(today=clock(), seed_sample_bills=False)
        )
        self._persistence = persistence or SnapshotPersistence(InMemorySnapshotStorage())
        self._audit_logger = audit_logger
        self._validator = validator or BillValidator()

    # =========================================================================
    # READ ACCESSORS
    # =========================================================================

    @property
    def snapshot(self) -> AppSnapshot:
        """A deep copy of the current state."""
        return self._snapshot.model_copy(deep=True)

    @property
    def bills(self) -> tuple[Bill, ...]:
        """Copies of the bills, in insertion order."""
        return tuple(b.model_copy(deep=True) for b in self._snapshot.bills)

    @property
    def members(self) -> tuple[Member, ...]:
        return tuple(m.model_copy() for m in self._snapshot.members)

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self._snapshot.categories)

    @property
    def settings(self) -> HouseholdSettings:
        return self._snapshot.settings

    @property
    def acting_member_id(self) -> Optional[str]:
        """The member actions are attributed to by default (the first one)."""
        members = self._snapshot.members
        return members[0].id if members else None

    def get(self, bill_id: str) -> Optional[Bill]:
        """A copy of the bill; changing it does not change the store."""
        for bill in self._snapshot.bills:
            if bill.id == bill_id:
                return bill.model_copy(deep=True)
        return None

    def __len__(self) -> int:
        return len(self._snapshot.bills)

    def __contains__(self, bill_id: object) -> bool:
        return any(b.id == bill_id for b in self._snapshot.bills)

    # =========================================================================
    # BILLS
    # =========================================================================

    def new_draft(self, due: Optional[date] = None) -> dict[str, Any]:
        """
        Form defaults for the "new bill" flow.

        Nothing is stored until the draft is passed to create().
        """
        snap = self._snapshot
        return {
            "title": "",
            "amount": 0,
            "due_iso": normalize_to_day_key(due) if due else self._clock(),
            "category": snap.categories[0] if snap.categories else FALLBACK_CATEGORY,
            "notes": "",
            "paid": False,
            "created_by": self.acting_member_id,
            "reminder_days": snap.default_reminder_days,
            "recipients": list(snap.default_recipients),
        }

    def form_values(self, draft: Mapping[str, Any]) -> dict[str, Any]:
        """
        Fill the missing values of a draft with the new-bill defaults.

        Only None counts as missing: 0 reminder days and an empty
        recipient list are kept as given.
        """
        values = dict(draft)
        for key, default in self.new_draft().items():
            if values.get(key) is None:
                values[key] = default
        return values

    def create(self, partial_bill: BillInput) -> Bill:
        """
        Validate and insert a new bill.

        A fresh id is always assigned. Missing reminder lead time and
        recipients are copied from the household defaults.

        Raises:
            InputValidationError: Blank title, bad amount or due date.
                                  The collection is unchanged.
        """
        data = self._to_fields(partial_bill)
        data.pop("id", None)

        snap = self._snapshot
        if data.get("due_iso") is None:
            data["due_iso"] = self._clock()
        if not data.get("category"):
            data["category"] = snap.categories[0] if snap.categories else FALLBACK_CATEGORY
        if data.get("created_by") is None:
            data["created_by"] = self.acting_member_id
        if data.get("reminder_days") is None:
            data["reminder_days"] = snap.default_reminder_days
        if data.get("recipients") is None:
            data["recipients"] = list(snap.default_recipients)

        self._check(self._validator.validate_bill(data, snap))

        data["id"] = self._new_bill_id()
        bill = self._build_bill(data, previous=None)
        snap.bills.append(bill)

        self._audit(AuditEventBuilder.bill_created(
            bill_id=bill.id,
            title=bill.title,
            amount=bill.amount,
            actor_id=bill.created_by,
        ))
        self._commit()
        return bill.model_copy(deep=True)

    def update(self, bill: BillInput) -> Bill:
        """
        Replace the bill with the same id, or insert it if there is none.

        Raises:
            InputValidationError: Same rules as create(), plus a missing id.
        """
        data = self._to_fields(bill)
        bill_id = data.get("id")
        if not isinstance(bill_id, str) or not bill_id:
            self._check(ValidationResult(subject="bill", issues=[ValidationIssue(
                field="id",
                issue_type="missing",
                message="Bill id is required for update.",
                severity="error",
            )]))

        self._check(self._validator.validate_bill(data, self._snapshot))

        bills = self._snapshot.bills
        index = next((i for i, b in enumerate(bills) if b.id == bill_id), None)
        previous = bills[index] if index is not None else None
        updated = self._build_bill(data, previous=previous)

        if index is None:
            bills.append(updated)
        else:
            bills[index] = updated

        self._audit(AuditEventBuilder.bill_updated(
            bill_id=updated.id,
            title=updated.title,
            inserted=index is None,
        ))
        self._commit()
        return updated.model_copy(deep=True)

    def toggle_paid(
        self,
        bill_id: str,
        acting_member_id: Optional[str] = None,
    ) -> Optional[Bill]:
        """
        Flip a bill between paid and unpaid.

        Marking paid records the acting member (default: the first
        member) as payer; marking unpaid clears the payer.
        Returns the updated bill, or None if the id is unknown.

        Raises:
            InputValidationError: Marking paid with nobody to record
                                  as payer. The bill is unchanged.
        """
        bills = self._snapshot.bills
        for i, bill in enumerate(bills):
            if bill.id != bill_id:
                continue
            actor = acting_member_id or self.acting_member_id
            paid = not bill.paid
            if paid and not actor:
                self._check(self._missing_payer_result())
            toggled = bill.model_copy(update={
                "paid": paid,
                "paid_by": actor if paid else None,
            })
            bills[i] = toggled
            self._audit(AuditEventBuilder.payment_status_updated(
                bill_id=bill_id,
                paid=paid,
                actor_id=actor,
            ))
            self._commit()
            return toggled.model_copy(deep=True)

        logger.debug("toggle_paid_unknown_bill", bill_id=bill_id)
        return None

    def delete(self, bill_id: str) -> bool:
        """
        Remove a bill. Asking the user to confirm is the caller's job.

        Returns False (and does nothing) if the id is unknown.
        """
        bills = self._snapshot.bills
        for i, bill in enumerate(bills):
            if bill.id == bill_id:
                del bills[i]
                self._audit(AuditEventBuilder.bill_deleted(bill_id, bill.title))
                self._commit()
                return True

        logger.debug("delete_unknown_bill", bill_id=bill_id)
        return False

    def _new_bill_id(self) -> str:
        existing = {b.id for b in self._snapshot.bills}
        while True:
            candidate = f"b{uuid4().hex[:12]}"
            if candidate not in existing:
                return candidate

    @staticmethod
    def _to_fields(bill: BillInput) -> dict[str, Any]:
        if isinstance(bill, Bill):
            return bill.model_dump()
        return normalize_bill_fields(bill)

    def _build_bill(self, data: dict[str, Any], previous: Optional[Bill]) -> Bill:
        """
        Turn validated fields into a Bill, enforcing the payer rule.

        Keeps the previous payer when an already-paid bill is re-saved
        without one. A paid bill with no possible payer is rejected.
        """
        fields = dict(data)
        fields["amount"] = parse_amount(fields.get("amount"))
        fields["due_iso"] = normalize_to_day_key(fields["due_iso"])
        fields["paid"] = bool(fields.get("paid", False))

        if fields["paid"] and not fields.get("paid_by"):
            if previous is not None and previous.paid and previous.paid_by:
                fields["paid_by"] = previous.paid_by
            else:
                fields["paid_by"] = self.acting_member_id
            if not fields["paid_by"]:
                self._check(self._missing_payer_result())
        elif not fields["paid"]:
            fields["paid_by"] = None

        try:
            return Bill.model_validate(fields)
        except ValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(p) for p in err.get("loc", ())) or "bill",
                    issue_type="invalid_value",
                    message=err.get("msg", "Invalid value"),
                    severity="error",
                )
                for err in e.errors()
            ]
            result = ValidationResult(subject="bill", issues=issues)
            self._audit(AuditEventBuilder.validation_failed(
                "bill", [i.model_dump() for i in issues]
            ))
            raise InputValidationError(result) from e

    # =========================================================================
    # SETTINGS / PREFERENCES
    # =========================================================================

    def set_default_reminder_days(self, days: int) -> None:
        self._check(self._validator.validate_reminder_days(days))
        self._snapshot.default_reminder_days = days
        self._audit(AuditEventBuilder.settings_updated("defaultReminderDays", days))
        self._commit()

    def set_default_recipients(self, member_ids: Iterable[str]) -> None:
        ids = list(dict.fromkeys(member_ids))
        self._check(self._validator.validate_recipients(ids, self._snapshot))
        self._snapshot.default_recipients = ids
        self._audit(AuditEventBuilder.settings_updated("defaultRecipients", ids))
        self._commit()

    def add_category(self, name: str) -> list[str]:
        """
        Append a category unless it already exists.

        Returns the resulting category list.
        """
        self._check(self._validator.validate_category(name))
        name = name.strip()
        categories = self._snapshot.categories
        if name not in categories:
            categories.append(name)
            self._audit(AuditEventBuilder.settings_updated("categories", list(categories)))
            self._commit()
        return list(categories)

    def add_member(self, name: str, phone: Optional[str] = None) -> Member:
        self._check(self._validator.validate_member(name, phone))
        member = Member(
            id=self._new_member_id(),
            name=name,
            phone=phone.strip() if phone and phone.strip() else None,
        )
        self._snapshot.members.append(member)
        self._audit(AuditEventBuilder.member_added(member.id, member.name))
        self._commit()
        return member

    def update_member(
        self,
        member_id: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[Member]:
        """Rename a member or change their phone. Unknown ids are a no-op."""
        members = self._snapshot.members
        for i, member in enumerate(members):
            if member.id != member_id:
                continue
            new_name = name if name is not None else member.name
            self._check(self._validator.validate_member(new_name, phone))
            update: dict[str, Any] = {"name": new_name.strip()}
            if phone is not None:
                update["phone"] = phone.strip() or None
            members[i] = member.model_copy(update=update)
            self._audit(AuditEventBuilder.member_updated(member_id, members[i].name))
            self._commit()
            return members[i]
        return None

    def remove_member(self, member_id: str) -> bool:
        """
        Remove a member nobody references.

        Raises:
            MemberInUseError: If any bill references the member, or it
                              is the last member of the household.
        """
        member = next((m for m in self._snapshot.members if m.id == member_id), None)
        if member is None:
            return False

        if len(self._snapshot.members) == 1:
            raise MemberInUseError(member_id, "Cannot remove the last household member.")

        referencing = [b.title for b in self._snapshot.bills if self._references(b, member_id)]
        if referencing:
            raise MemberInUseError(
                member_id,
                f"{member.name} is still referenced by {len(referencing)} bill(s).",
            )

        self._snapshot.members = [m for m in self._snapshot.members if m.id != member_id]
        self._snapshot.default_recipients = [
            r for r in self._snapshot.default_recipients if r != member_id
        ]
        self._audit(AuditEventBuilder.member_removed(member_id, member.name))
        self._commit()
        return True

    @staticmethod
    def _references(bill: Bill, member_id: str) -> bool:
        return (
            bill.created_by == member_id
            or bill.paid_by == member_id
            or member_id in (bill.recipients or [])
        )

    def _new_member_id(self) -> str:
        numbers = [
            int(match.group(1))
            for m in self._snapshot.members
            if (match := re.fullmatch(r"u(\d+)", m.id))
        ]
        return f"u{max(numbers, default=0) + 1}"

    def member_name(self, member_id: Optional[str]) -> str:
        """Display name for a member id; dangling ids get a placeholder."""
        for member in self._snapshot.members:
            if member.id == member_id:
                return member.name
        return UNKNOWN_MEMBER_NAME

    def effective_reminder_days(self, bill: Bill) -> int:
        if bill.reminder_days is not None:
            return bill.reminder_days
        return self._snapshot.default_reminder_days

    def effective_recipients(self, bill: Bill) -> list[str]:
        if bill.recipients is not None:
            return list(bill.recipients)
        return list(self._snapshot.default_recipients)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def rehydrate(self) -> bool:
        """
        Apply the stored snapshot on top of the current state.

        Fields missing from storage keep their in-memory values.
        Returns True if anything was applied.
        """
        patch = self._persistence.load()
        if patch is None or patch.is_empty:
            return False
        self._snapshot = self._with_payers(self._snapshot.merged(patch))
        logger.info(
            "snapshot_rehydrated",
            fields=sorted(patch.present_fields()),
            bill_count=len(self._snapshot.bills),
        )
        return True

    def import_document(self, data: Union[bytes, str]) -> SnapshotPatch:
        """
        Merge an exported document into the current state, all or nothing.

        Raises:
            ImportDocumentError: The document was rejected; state untouched.
        """
        patch = self._persistence.import_document(data)
        self._snapshot = self._with_payers(self._snapshot.merged(patch))
        self._audit(AuditEventBuilder.document_imported(sorted(patch.present_fields())))
        self._commit()
        return patch

    def export_payload(self, today: Optional[date] = None) -> tuple[str, bytes]:
        """
        Build the export file without recording it.

        Returns:
            (filename, content) - e.g. ("bills-2024-03-01.json", b"{...}")
        """
        filename = export_filename(today or self._clock())
        return filename, self._persistence.export_document(self._snapshot)

    def record_export(self, filename: str) -> None:
        """Audit an export the user actually downloaded."""
        self._audit(AuditEventBuilder.document_exported(filename, len(self._snapshot.bills)))

    def export_document(self, today: Optional[date] = None) -> tuple[str, bytes]:
        """Build the export file and record the export."""
        filename, content = self.export_payload(today)
        self.record_export(filename)
        return filename, content

    def save(self) -> bool:
        """Write the current snapshot. Normally called after every mutation."""
        return self._persistence.save(self._snapshot)

    def _commit(self) -> None:
        self.save()

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _missing_payer_result() -> ValidationResult:
        return ValidationResult(subject="bill", issues=[ValidationIssue(
            field="paid_by",
            issue_type="missing",
            message="Add a household member before marking bills paid.",
            severity="error",
        )])

    @staticmethod
    def _with_payers(snapshot: AppSnapshot) -> AppSnapshot:
        """
        Give every paid bill a payer.

        Stored or imported bills can be paid without `paidBy`. The creator
        is recorded as payer, else the first member; with neither, the
        bill goes back to unpaid.
        """
        fallback = snapshot.members[0].id if snapshot.members else None
        for i, bill in enumerate(snapshot.bills):
            if not bill.paid or bill.paid_by:
                continue
            payer = bill.created_by or fallback
            logger.warning("paid_bill_without_payer", bill_id=bill.id, payer=payer)
            snapshot.bills[i] = bill.model_copy(update={
                "paid": payer is not None,
                "paid_by": payer,
            })
        return snapshot

    def _check(self, result: ValidationResult) -> None:
        """Raise InputValidationError if the result has errors."""
        if result.has_errors:
            self._audit(AuditEventBuilder.validation_failed(
                result.subject, [i.model_dump() for i in result.issues]
            ))
            raise InputValidationError(result)

    def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            self._audit_logger.log(event)
