"""First-run household state."""

from datetime import date
from typing import Optional

from billbook.models.bill import AppSnapshot, Bill, Member

DEFAULT_MEMBERS = [
    Member(id="u1", name="You", phone="+15551234567"),
    Member(id="u2", name="Partner", phone="+15557654321"),
]

DEFAULT_CATEGORIES = [
    "Home",
    "Car",
    "Utilities",
    "Internet",
    "Phone",
    "Insurance",
    "Credit Card",
    "Loan",
    "Investment",
    "Medical",
    "Subscription",
    "Groceries",
    "Misc",
]

DEFAULT_REMINDER_DAYS = 1
DEFAULT_RECIPIENTS = ["u1"]

FALLBACK_CATEGORY = "Misc"


def sample_bills(today: date) -> list[Bill]:
    """Two example bills in the current month: Internet (unpaid) and Rent (paid)."""
    return [
        Bill(
            id="b1",
            title="Internet",
            amount=60,
            due_iso=today.replace(day=16),
            category="Internet",
            paid=False,
            created_by="u1",
            recipients=["u1"],
        ),
        Bill(
            id="b2",
            title="Rent",
            amount=1200,
            due_iso=today.replace(day=5),
            category="Home",
            paid=True,
            created_by="u1",
            paid_by="u1",
        ),
    ]


def default_snapshot(
    today: Optional[date] = None,
    seed_sample_bills: bool = True,
) -> AppSnapshot:
    """The state a brand-new installation starts from."""
    today = today or date.today()
    return AppSnapshot(
        members=[m.model_copy() for m in DEFAULT_MEMBERS],
        categories=list(DEFAULT_CATEGORIES),
        default_reminder_days=DEFAULT_REMINDER_DAYS,
        default_recipients=list(DEFAULT_RECIPIENTS),
        bills=sample_bills(today) if seed_sample_bills else [],
    )
