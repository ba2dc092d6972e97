"""Household state store."""

from billbook.store.defaults import (
    DEFAULT_CATEGORIES,
    DEFAULT_MEMBERS,
    default_snapshot,
    sample_bills,
)
from billbook.store.household import (
    UNKNOWN_MEMBER_NAME,
    HouseholdStore,
    MemberInUseError,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "DEFAULT_MEMBERS",
    "UNKNOWN_MEMBER_NAME",
    "HouseholdStore",
    "MemberInUseError",
    "default_snapshot",
    "sample_bills",
]
