"""
Audit Models for Household Bills

Every mutation of the household state is recorded as an audit event.
This provides:
1. Traceability of who changed what
2. Debugging information when a save or import goes wrong
3. A recent-activity feed for the UI

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every store mutation and every persistence outcome has its own type.
    """
    # Bills
    BILL_CREATED = "bill_created"
    BILL_UPDATED = "bill_updated"
    BILL_DELETED = "bill_deleted"
    PAYMENT_STATUS_UPDATED = "payment_status_updated"
    VALIDATION_FAILED = "validation_failed"

    # Settings / household
    SETTINGS_UPDATED = "settings_updated"
    MEMBER_ADDED = "member_added"
    MEMBER_UPDATED = "member_updated"
    MEMBER_REMOVED = "member_removed"

    # Persistence
    SNAPSHOT_LOADED = "snapshot_loaded"
    LOAD_FAILED = "load_failed"
    SAVE_FAILED = "save_failed"
    DOCUMENT_EXPORTED = "document_exported"
    DOCUMENT_IMPORTED = "document_imported"
    IMPORT_FAILED = "import_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bill', 'member', 'snapshot')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    actor_id: Optional[str] = Field(
        default=None,
        description="Member id of whoever triggered the event"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.bill_created(bill_id, title, amount, actor_id)
        event = AuditEventBuilder.save_failed(error_message)
    """

    @staticmethod
    def bill_created(
        bill_id: str,
        title: str,
        amount: float,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_CREATED,
            entity_type="bill",
            entity_id=bill_id,
            actor_id=actor_id,
            description=f"Bill created: {title}",
            details={"title": title, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def bill_updated(
        bill_id: str,
        title: str,
        inserted: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_UPDATED,
            entity_type="bill",
            entity_id=bill_id,
            description=(
                f"Bill inserted on update: {title}" if inserted
                else f"Bill updated: {title}"
            ),
            details={"title": title, "inserted": inserted},
            is_user_action=True,
        )

    @staticmethod
    def bill_deleted(bill_id: str, title: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_DELETED,
            entity_type="bill",
            entity_id=bill_id,
            description=f"Bill deleted: {title}",
            details={"title": title},
            is_user_action=True,
        )

    @staticmethod
    def payment_status_updated(
        bill_id: str,
        paid: bool,
        actor_id: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_STATUS_UPDATED,
            entity_type="bill",
            entity_id=bill_id,
            actor_id=actor_id,
            description="Bill marked paid" if paid else "Bill marked unpaid",
            details={"paid": paid},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        subject: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=subject,
            description=f"Validation failed for {subject} ({len(issues)} issues)",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def settings_updated(setting: str, value: Any) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            entity_id=setting,
            description=f"Setting changed: {setting}",
            details={"value": value},
            is_user_action=True,
        )

    @staticmethod
    def member_added(member_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            entity_type="member",
            entity_id=member_id,
            description=f"Member added: {name}",
            is_user_action=True,
        )

    @staticmethod
    def member_updated(member_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_UPDATED,
            entity_type="member",
            entity_id=member_id,
            description=f"Member updated: {name}",
            is_user_action=True,
        )

    @staticmethod
    def member_removed(member_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_REMOVED,
            entity_type="member",
            entity_id=member_id,
            description=f"Member removed: {name}",
            is_user_action=True,
        )

    @staticmethod
    def snapshot_loaded(fields: list[str], skipped: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            severity=AuditSeverity.WARNING if skipped else AuditSeverity.INFO,
            entity_type="snapshot",
            description=f"Snapshot loaded ({len(fields)} fields)",
            details={"fields": fields, "skipped": skipped},
        )

    @staticmethod
    def load_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAD_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description="Failed to load local state",
            error_message=error_message,
        )

    @staticmethod
    def save_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description="Failed to save local state",
            error_message=error_message,
        )

    @staticmethod
    def document_exported(filename: str, bill_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_EXPORTED,
            entity_type="snapshot",
            description=f"Exported {filename}",
            details={"filename": filename, "bill_count": bill_count},
            is_user_action=True,
        )

    @staticmethod
    def document_imported(fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_IMPORTED,
            entity_type="snapshot",
            description="Data imported successfully",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def import_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description="Import rejected: invalid file",
            error_message=error_message,
            is_user_action=True,
        )
