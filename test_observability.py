"""
Observability Tests

Covers the ambient stack around the engine:
1. Structured logging carries the correlation context of the current operation
2. Audit events are produced for lifecycle transitions and can be queried
3. A failing audit backend never breaks the transition that emitted the event
"""

import json
import logging
from datetime import datetime

import pytest

from core.audit.events import (
    AuditBackend,
    AuditLogger,
    InMemoryAuditBackend,
    StockAuditEventType,
    create_audit_event,
)
from core.models.refs import AuditSeverity
from core.observability.logging import (
    CorrelationContext,
    HumanReadableFormatter,
    StructuredFormatter,
    get_correlation_context,
    get_logger,
    with_correlation,
)


def make_record(msg="Test message", level=logging.INFO, extra_fields=None):
    record = logging.LogRecord(
        name="lifecycle.controller",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    if extra_fields:
        record.extra_fields = extra_fields
    return record


class CapturingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestCorrelatedLogging:
    """Structured logging with correlation IDs."""

    def test_context_drops_unset_fields(self):
        ctx = CorrelationContext(document_number="BR-2025-0001", store_id="S1")
        assert ctx.to_dict() == {"document_number": "BR-2025-0001", "store_id": "S1"}

    def test_nested_contexts_merge_and_restore(self):
        assert get_correlation_context().document_number is None

        with with_correlation(document_number="TR-2025-0003", store_id="S1"):
            with with_correlation(user_id="U1", store_id=None):
                inner = get_correlation_context()
                assert inner.document_number == "TR-2025-0003"
                assert inner.store_id == "S1"
                assert inner.user_id == "U1"
            assert get_correlation_context().user_id is None

        assert get_correlation_context() == CorrelationContext()

    def test_context_restored_after_error(self):
        with pytest.raises(RuntimeError):
            with with_correlation(document_number="INV-2025-0001"):
                raise RuntimeError("boom")
        assert get_correlation_context().document_number is None

    def test_structured_formatter_json_output(self):
        formatter = StructuredFormatter()
        with with_correlation(document_number="BR-2025-0001", store_id="S1"):
            output = formatter.format(make_record(extra_fields={"risk_level": "HIGH"}))

        data = json.loads(output)
        assert data["message"] == "Test message"
        assert data["level"] == "INFO"
        assert data["document_number"] == "BR-2025-0001"
        assert data["store_id"] == "S1"
        assert data["risk_level"] == "HIGH"

    def test_human_readable_formatter(self):
        formatter = HumanReadableFormatter()
        with with_correlation(document_number="BR-2025-0001", store_id="S1", user_id="U1"):
            output = formatter.format(make_record(extra_fields={"errors": 2}))

        assert "[S1/BR-2025-0001/user:U1]" in output
        assert output.endswith("Test message errors=2")

    def test_correlated_logger_attaches_extra_fields(self):
        handler = CapturingHandler()
        logger = get_logger("risk.test_extra_fields")
        logging.getLogger("risk.test_extra_fields").addHandler(handler)
        try:
            logger.warning("Operation requires approval", extra_fields={"risk_level": "HIGH"})
        finally:
            logging.getLogger("risk.test_extra_fields").removeHandler(handler)

        assert len(handler.records) == 1
        assert handler.records[0].getMessage() == "Operation requires approval"
        assert handler.records[0].extra_fields == {"risk_level": "HIGH"}

    def test_get_logger_is_cached(self):
        assert get_logger("valuation.cump") is get_logger("valuation.cump")


class TestAuditEvents:
    """Audit event creation, fan-out and queries."""

    def test_create_event_defaults(self):
        event = create_audit_event(StockAuditEventType.RECEIPT_VALIDATED, "Receipt validated")
        assert event.event_type == "RECEIPT_VALIDATED"
        assert event.severity == AuditSeverity.INFO
        assert event.actor == "system"
        assert event.details == {}
        assert event.event_id

    def test_unknown_event_type_is_rejected(self):
        with pytest.raises(ValueError):
            create_audit_event("PACKAGE_CREATED", "not a stock event")

    def test_logger_fans_out_to_every_backend(self):
        first, second = InMemoryAuditBackend(), InMemoryAuditBackend()
        audit = AuditLogger([first])
        audit.add_backend(second)

        event = audit.log_warning(
            StockAuditEventType.TRANSFER_RECEIVED_WITH_VARIANCE,
            "Transfer received",
            document_id="t-1",
            store_id="S1",
            timestamp=datetime(2025, 3, 5, 10, 0),
        )

        assert event.severity == AuditSeverity.WARN
        assert first.query() == [event]
        assert second.query() == [event]

    def test_query_filters(self):
        backend = InMemoryAuditBackend()
        audit = AuditLogger([backend])
        audit.log_info(StockAuditEventType.INVENTORY_SUBMITTED, "a", document_id="inv-1", store_id="S1")
        audit.log_info(StockAuditEventType.INVENTORY_VALIDATED, "b", document_id="inv-1", store_id="S1")
        audit.log_info(StockAuditEventType.INVENTORY_SUBMITTED, "c", document_id="inv-2", store_id="S2")

        assert [e.message for e in audit.query(document_id="inv-1")] == ["a", "b"]
        assert [e.message for e in audit.query(event_type="INVENTORY_SUBMITTED")] == ["a", "c"]
        assert [e.message for e in audit.query(store_id="S2")] == ["c"]
        assert len(audit.query(limit=2)) == 2

        backend.clear()
        assert audit.query() == []

    def test_query_without_backend(self):
        assert AuditLogger().query() == []

    def test_failing_backend_is_skipped(self):
        class BrokenBackend(AuditBackend):
            def log(self, event):
                raise IOError("disk full")

            def query(self, event_type=None, document_id=None, store_id=None, limit=100):
                return []

        healthy = InMemoryAuditBackend()
        audit = AuditLogger([BrokenBackend(), healthy])
        audit.log_info(StockAuditEventType.TRANSFER_CANCELLED, "Transfer cancelled", document_id="t-1")

        assert len(healthy.query()) == 1

    def test_controller_failure_in_audit_does_not_block(self, repository, make_transfer):
        from lifecycle.controller import StockLifecycleController

        class BrokenBackend(AuditBackend):
            def log(self, event):
                raise IOError("disk full")

            def query(self, event_type=None, document_id=None, store_id=None, limit=100):
                return []

        controller = StockLifecycleController(repository, audit_logger=AuditLogger([BrokenBackend()]))
        repository.add(make_transfer())
        transfer = controller.cancel_transfer("t-1", "manager-1")
        assert transfer.status.value == "annule"
        assert repository.get("t-1").status.value == "annule"
