"""Result models produced by the validation, risk and reconciliation engines."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Validation Results
# =============================================================================

class ValidationErrorKind(str, Enum):
    """Kinds of structural errors a validator can report."""
    INVALID_QUANTITY = "INVALID_QUANTITY"
    ZERO_QUANTITY = "ZERO_QUANTITY"
    NEGATIVE_QUANTITY = "NEGATIVE_QUANTITY"
    INVALID_COST = "INVALID_COST"
    ZERO_COST = "ZERO_COST"
    NEGATIVE_COST = "NEGATIVE_COST"
    MISSING_SUPPLIER = "MISSING_SUPPLIER"
    INVALID_EMAIL = "INVALID_EMAIL"
    MISSING_STORE = "MISSING_STORE"
    MISSING_PRODUCT = "MISSING_PRODUCT"
    MISSING_DATE = "MISSING_DATE"
    FUTURE_DATE = "FUTURE_DATE"
    EMPTY_LINES = "EMPTY_LINES"
    MISSING_LINES = "MISSING_LINES"
    CALCULATION_ERROR = "CALCULATION_ERROR"
    TOTAL_MISMATCH = "TOTAL_MISMATCH"
    DUPLICATE_PRODUCT = "DUPLICATE_PRODUCT"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    SAME_SOURCE_DESTINATION = "SAME_SOURCE_DESTINATION"
    MISSING_COUNT = "MISSING_COUNT"
    MISSING_COMMENT = "MISSING_COMMENT"
    INCONSISTENT_STOCK = "INCONSISTENT_STOCK"
    LARGE_DOCUMENT = "LARGE_DOCUMENT"
    LARGE_VALUE = "LARGE_VALUE"
    CRITICAL_STOCK = "CRITICAL_STOCK"
    OVERSTOCK = "OVERSTOCK"
    RECEPTION_VARIANCE = "RECEPTION_VARIANCE"


class StockValidationError(BaseModel):
    """A single validation finding, addressable to one field (and line)."""
    field: str = Field(..., description="Attribute the error refers to")
    kind: ValidationErrorKind
    message: str
    line_index: Optional[int] = Field(None, description="0-based line index when line-scoped")
    details: dict = Field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "kind": self.kind.value,
            "message": self.message,
            "line_index": self.line_index,
            "details": self.details,
        }


class ValidationResult(BaseModel):
    """Outcome of a document validator."""
    is_valid: bool = True
    errors: List[StockValidationError] = Field(default_factory=list)
    warnings: List[StockValidationError] = Field(default_factory=list)

    @classmethod
    def from_findings(
        cls,
        errors: List[StockValidationError],
        warnings: Optional[List[StockValidationError]] = None,
    ) -> "ValidationResult":
        return cls(is_valid=not errors, errors=errors, warnings=warnings or [])

    def kinds(self) -> List[ValidationErrorKind]:
        """Error kinds in report order."""
        return [e.kind for e in self.errors]

    def has_error(self, kind: ValidationErrorKind) -> bool:
        return any(e.kind == kind for e in self.errors)


# =============================================================================
# Risk Assessment
# =============================================================================

class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]


_RISK_RANK = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}

APPROVAL_LEVELS = {RiskLevel.HIGH, RiskLevel.CRITICAL}


class RiskAssessment(BaseModel):
    """Advisory risk classification of a candidate operation."""
    level: RiskLevel = RiskLevel.LOW
    risk_factors: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    requires_approval: bool = False


class AdvancedValidationResult(ValidationResult):
    """Structural validation merged with the risk assessment."""
    risk_level: RiskLevel = RiskLevel.LOW
    risk_factors: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    requires_approval: bool = False


# =============================================================================
# Reconciliation
# =============================================================================

class InconsistencySeverity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class InventoryInconsistency(BaseModel):
    """A counted quantity that disagrees with the recorded one beyond tolerance."""
    store_id: str
    product_id: str
    theoretical_quantity: Decimal
    physical_quantity: Decimal
    variance: Decimal
    variance_percentage: Decimal
    severity: InconsistencySeverity
    possible_causes: List[str] = Field(default_factory=list)
    recommended_actions: List[str] = Field(default_factory=list)


class ReconciliationActionType(str, Enum):
    ADJUSTMENT = "adjustment"
    RECOUNT = "recount"
    INVESTIGATION = "investigation"
    AUDIT = "audit"


class ReconciliationAction(BaseModel):
    """Non-committing remediation proposal; posting it is the ledger's job."""
    store_id: str
    product_id: str
    action_type: ReconciliationActionType
    severity: InconsistencySeverity
    priority: str
    required_role: str
    description: str
    suggested_adjustment: Decimal
    estimated_duration_minutes: int = 0


# =============================================================================
# Cost Valuation
# =============================================================================

class CostImpact(BaseModel):
    """Weighted-average cost before and after receiving one line."""
    product_id: str
    old_average_cost: Decimal
    new_average_cost: Decimal


# =============================================================================
# Audit Event Models
# =============================================================================

class AuditSeverity(str, Enum):
    """Severity levels for audit events."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class AuditEvent(BaseModel):
    """An audit event emitted for each committed document transition."""
    event_id: str = Field(..., description="Unique event identifier")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Event timestamp")
    event_type: str = Field(..., description="Type of event (RECEIPT_VALIDATED, ...)")
    severity: AuditSeverity = Field(default=AuditSeverity.INFO, description="Event severity")

    # Context
    document_id: Optional[str] = Field(None, description="Affected document id")
    document_number: Optional[str] = Field(None, description="Affected document number")
    store_id: Optional[str] = Field(None, description="Store the document belongs to")
    from_status: Optional[str] = Field(None, description="Status before the transition")
    to_status: Optional[str] = Field(None, description="Status after the transition")

    # Details
    message: str = Field(..., description="Human-readable message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional event details")

    # Actor
    actor: str = Field(default="system", description="Who/what performed the action")
