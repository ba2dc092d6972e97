"""Audit logging package."""

from billbook.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
