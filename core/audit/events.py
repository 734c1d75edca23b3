"""Audit event logging.

Every committed document transition (receipt validated, transfer received,
inventory submitted...) produces one audit event. Durable storage of those
events belongs to the host application, which plugs in its own backend.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from core.models.refs import AuditEvent, AuditSeverity
from core.observability.logging import get_logger


logger = get_logger(__name__)


class StockAuditEventType(str, Enum):
    """Audit event types emitted by the lifecycle controller."""
    # Receipts
    RECEIPT_VALIDATED = "RECEIPT_VALIDATED"
    RECEIPT_DELETED = "RECEIPT_DELETED"

    # Transfers
    TRANSFER_RECEIVED = "TRANSFER_RECEIVED"
    TRANSFER_RECEIVED_WITH_VARIANCE = "TRANSFER_RECEIVED_WITH_VARIANCE"
    TRANSFER_CANCELLED = "TRANSFER_CANCELLED"

    # Inventories
    INVENTORY_COUNTS_RECORDED = "INVENTORY_COUNTS_RECORDED"
    INVENTORY_SUBMITTED = "INVENTORY_SUBMITTED"
    INVENTORY_VALIDATED = "INVENTORY_VALIDATED"
    INVENTORY_REJECTED = "INVENTORY_REJECTED"
    INVENTORY_DELETED = "INVENTORY_DELETED"


def create_audit_event(
    event_type: StockAuditEventType,
    message: str,
    severity: AuditSeverity = AuditSeverity.INFO,
    document_id: Optional[str] = None,
    document_number: Optional[str] = None,
    store_id: Optional[str] = None,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    actor: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> AuditEvent:
    """Build the audit event for one document transition.

    Args:
        event_type: StockAuditEventType (or its string value)
        message: Human-readable message
        severity: Event severity level
        document_id: Affected document id
        document_number: Affected document number (BR-2025-0001)
        store_id: Store the document belongs to
        from_status: Status before the transition
        to_status: Status after the transition
        details: Additional structured details
        actor: Who performed the action (defaults to "system")
        timestamp: Event time (defaults to now, UTC)

    Returns:
        AuditEvent with a fresh uuid4 event_id
    """
    return AuditEvent(
        event_id=str(uuid.uuid4()),
        timestamp=timestamp or datetime.utcnow(),
        event_type=StockAuditEventType(event_type).value,
        severity=severity,
        document_id=document_id,
        document_number=document_number,
        store_id=store_id,
        from_status=from_status,
        to_status=to_status,
        message=message,
        details=details or {},
        actor=actor or "system",
    )


class AuditBackend(ABC):
    """Abstract base class for audit persistence backends."""

    @abstractmethod
    def log(self, event: AuditEvent) -> None:
        """Persist an audit event."""

    @abstractmethod
    def query(
        self,
        event_type: Optional[str] = None,
        document_id: Optional[str] = None,
        store_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query audit events with filters."""


class InMemoryAuditBackend(AuditBackend):
    """In-memory audit backend for tests and single-process use."""

    def __init__(self):
        self._events: List[AuditEvent] = []

    def log(self, event: AuditEvent) -> None:
        self._events.append(event)

    def query(
        self,
        event_type: Optional[str] = None,
        document_id: Optional[str] = None,
        store_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        wanted = {
            "event_type": event_type,
            "document_id": document_id,
            "store_id": store_id,
        }
        wanted = {name: value for name, value in wanted.items() if value}
        matches = [
            event for event in self._events
            if all(getattr(event, name) == value for name, value in wanted.items())
        ]
        return matches[:limit]

    def clear(self) -> None:
        self._events.clear()


class AuditLogger:
    """Fan-out audit logger.

    Usage:
        audit = AuditLogger()
        audit.add_backend(InMemoryAuditBackend())
        audit.log_info(
            StockAuditEventType.RECEIPT_VALIDATED,
            "Receipt BR-2025-0001 validated",
            document_number="BR-2025-0001",
        )
    """

    def __init__(self, backends: Optional[List[AuditBackend]] = None):
        self._backends: List[AuditBackend] = list(backends or [])

    def add_backend(self, backend: AuditBackend) -> None:
        self._backends.append(backend)

    def log(self, event: AuditEvent) -> None:
        """Log event to all backends.

        A failing backend is reported and skipped; the transition that
        produced the event has already been committed.
        """
        for backend in self._backends:
            try:
                backend.log(event)
            except Exception:
                logger.exception(
                    "Audit backend failed",
                    extra_fields={
                        "backend": type(backend).__name__,
                        "event_type": event.event_type,
                        "document_id": event.document_id,
                    },
                )

    def log_info(self, event_type: StockAuditEventType, message: str, **kwargs) -> AuditEvent:
        event = create_audit_event(event_type, message, AuditSeverity.INFO, **kwargs)
        self.log(event)
        return event

    def log_warning(self, event_type: StockAuditEventType, message: str, **kwargs) -> AuditEvent:
        event = create_audit_event(event_type, message, AuditSeverity.WARN, **kwargs)
        self.log(event)
        return event

    def query(
        self,
        event_type: Optional[str] = None,
        document_id: Optional[str] = None,
        store_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query events from the first backend."""
        if not self._backends:
            return []
        return self._backends[0].query(event_type, document_id, store_id, limit)
