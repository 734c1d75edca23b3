"""Shared fixtures for the stock engine tests."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from core.audit.events import AuditLogger, InMemoryAuditBackend
from core.models.canonical import (
    HistoricalData,
    InventoryLine,
    OperationContext,
    PhysicalInventory,
    ReceiptLine,
    RecentOperation,
    StockLevel,
    StockReceipt,
    StockTransfer,
    TransferLine,
)
from lifecycle.controller import StockLifecycleController
from lifecycle.repository import InMemoryDocumentRepository


# Wednesday, inside business hours
NOW = datetime(2025, 3, 5, 10, 0, 0)
TODAY = date(2025, 3, 5)


def build_receipt(lines=((10, 5000), (5, 3000)), total=None, **overrides):
    """Receipt with products P1..Pn; subtotals are exact unless overridden."""
    receipt_lines = []
    for index, line in enumerate(lines):
        quantity, cost = line[0], line[1]
        subtotal = line[2] if len(line) > 2 else Decimal(str(quantity)) * Decimal(str(cost))
        receipt_lines.append(ReceiptLine(
            product_id=line[3] if len(line) > 3 else f"P{index + 1}",
            quantity_received=quantity,
            unit_cost=cost,
            subtotal=subtotal,
        ))
    if total is None:
        total = sum((l.subtotal for l in receipt_lines), Decimal("0"))

    data = {
        "id": "r-1",
        "number": "BR-2025-0001",
        "date": TODAY,
        "supplier_id": "SUP-1",
        "store_id": "S1",
        "lines": receipt_lines,
        "total_value": total,
    }
    data.update(overrides)
    return StockReceipt(**data)


def build_transfer(lines=(("P1", 10),), source="S1", destination="S2", **overrides):
    data = {
        "id": "t-1",
        "number": "TR-2025-0001",
        "source_store_id": source,
        "destination_store_id": destination,
        "lines": [
            TransferLine(product_id=line[0], quantity_sent=line[1], unit_cost=line[2] if len(line) > 2 else None)
            for line in lines
        ],
    }
    data.update(overrides)
    return StockTransfer(**data)


def build_inventory(lines=(("P1", 10, 100), ("P2", 20, 50)), **overrides):
    """Inventory lines given as (product_id, theoretical quantity, unit cost)."""
    data = {
        "id": "inv-1",
        "number": "INV-2025-0001",
        "date": TODAY,
        "store_id": "S1",
        "lines": [
            InventoryLine(product_id=p, theoretical_quantity=q, unit_cost=c)
            for p, q, c in lines
        ],
    }
    data.update(overrides)
    return PhysicalInventory(**data)


def build_level(store_id, product_id, quantity, reserved=0, available=None, average_cost=None):
    return StockLevel(
        store_id=store_id,
        product_id=product_id,
        quantity=quantity,
        reserved_quantity=reserved,
        available_quantity=available,
        average_cost=average_cost,
    )


def build_context(timestamp=NOW, recent=(), history=None, **overrides):
    """Context; recent operations are given as timestamps."""
    data = {
        "user_id": "U1",
        "store_id": "S1",
        "timestamp": timestamp,
        "recent_operations": [RecentOperation(type="receipt", timestamp=ts) for ts in recent],
        "historical_data": HistoricalData(**history) if history else None,
    }
    data.update(overrides)
    return OperationContext(**data)


@pytest.fixture
def make_receipt():
    return build_receipt


@pytest.fixture
def make_transfer():
    return build_transfer


@pytest.fixture
def make_inventory():
    return build_inventory


@pytest.fixture
def make_level():
    return build_level


@pytest.fixture
def make_context():
    return build_context


@pytest.fixture
def repository():
    return InMemoryDocumentRepository()


@pytest.fixture
def audit_backend():
    return InMemoryAuditBackend()


@pytest.fixture
def controller(repository, audit_backend):
    return StockLifecycleController(
        repository,
        audit_logger=AuditLogger([audit_backend]),
        clock=lambda: NOW,
    )
