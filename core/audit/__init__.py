"""Core audit module - audit events for committed document transitions."""

from core.audit.events import (
    AuditBackend,
    AuditLogger,
    InMemoryAuditBackend,
    StockAuditEventType,
    create_audit_event,
)

__all__ = [
    "AuditBackend",
    "AuditLogger",
    "InMemoryAuditBackend",
    "StockAuditEventType",
    "create_audit_event",
]
