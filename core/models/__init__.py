"""Core data models - storage-neutral canonical types.

This package contains the stock documents, reference data and the result
types returned by the validation, risk and reconciliation engines.
"""

from core.models.canonical import (
    # Base
    CanonicalBase,
    DecimalValue,
    DateValue,

    # Statuses
    ReceiptStatus,
    TransferStatus,
    InventoryStatus,
    TERMINAL_STATUSES,

    # Reference data
    Product,
    Supplier,
    StockLevel,

    # Documents
    ReceiptLine,
    StockReceipt,
    TransferLine,
    StockTransfer,
    TransferReception,
    InventoryLine,
    PhysicalInventory,
    PhysicalCount,

    # Context
    RecentOperation,
    HistoricalData,
    OperationContext,

    # Candidate operations
    ReceiptOperation,
    TransferOperation,
    InventoryOperation,
    CandidateOperation,
    OperationEnvelope,
)

from core.models.refs import (
    ValidationErrorKind,
    StockValidationError,
    ValidationResult,
    RiskLevel,
    RiskAssessment,
    AdvancedValidationResult,
    InconsistencySeverity,
    InventoryInconsistency,
    ReconciliationActionType,
    ReconciliationAction,
    CostImpact,
    AuditEvent,
    AuditSeverity,
)

__all__ = [
    # Base
    "CanonicalBase",
    "DecimalValue",
    "DateValue",

    # Statuses
    "ReceiptStatus",
    "TransferStatus",
    "InventoryStatus",
    "TERMINAL_STATUSES",

    # Reference data
    "Product",
    "Supplier",
    "StockLevel",

    # Documents
    "ReceiptLine",
    "StockReceipt",
    "TransferLine",
    "StockTransfer",
    "TransferReception",
    "InventoryLine",
    "PhysicalInventory",
    "PhysicalCount",

    # Context
    "RecentOperation",
    "HistoricalData",
    "OperationContext",

    # Candidate operations
    "ReceiptOperation",
    "TransferOperation",
    "InventoryOperation",
    "CandidateOperation",
    "OperationEnvelope",

    # Results
    "ValidationErrorKind",
    "StockValidationError",
    "ValidationResult",
    "RiskLevel",
    "RiskAssessment",
    "AdvancedValidationResult",
    "InconsistencySeverity",
    "InventoryInconsistency",
    "ReconciliationActionType",
    "ReconciliationAction",
    "CostImpact",
    "AuditEvent",
    "AuditSeverity",
]
