"""Reconciliation engine for physical inventory counts.

Exposes high-level functions:
- detect_inventory_inconsistencies(stock_levels, counts, rules) -> List[InventoryInconsistency]
- generate_reconciliation_actions(inconsistencies) -> List[ReconciliationAction]
- summarize_inconsistencies(inconsistencies) -> dict

Severity bands are expressed as multiples of the inventory tolerance t:
|p| <= t is within tolerance, then minor up to 2t, major up to 5t and
critical beyond. A product counted in a store that has no stock record is
always critical.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Sequence

from core.config import DEFAULT_BUSINESS_RULES, BusinessRules
from core.models.canonical import PhysicalCount, StockLevel
from core.models.refs import (
    InconsistencySeverity,
    InventoryInconsistency,
    ReconciliationAction,
    ReconciliationActionType,
)
from core.observability.logging import get_logger
from validation.documents import index_stock_levels


logger = get_logger(__name__)


# =============================================================================
# Configuration
# =============================================================================

MINOR_BAND_FACTOR = Decimal("2")
MAJOR_BAND_FACTOR = Decimal("5")
PERCENTAGE_QUANTUM = Decimal("0.01")
HUNDRED = Decimal("100")


# (action type, priority, required role, estimated minutes) per severity
ACTION_POLICY = {
    InconsistencySeverity.MINOR: (ReconciliationActionType.ADJUSTMENT, "low", "manager", 5),
    InconsistencySeverity.MAJOR: (ReconciliationActionType.INVESTIGATION, "high", "director", 60),
    InconsistencySeverity.CRITICAL: (ReconciliationActionType.AUDIT, "urgent", "director", 120),
}


# =============================================================================
# Classification
# =============================================================================

def classify_variance(variance_percentage: Decimal, tolerance_percentage: Decimal):
    """Severity band of a variance percentage, or None when within tolerance."""
    magnitude = abs(variance_percentage)
    if magnitude <= tolerance_percentage:
        return None
    if magnitude <= tolerance_percentage * MINOR_BAND_FACTOR:
        return InconsistencySeverity.MINOR
    if magnitude <= tolerance_percentage * MAJOR_BAND_FACTOR:
        return InconsistencySeverity.MAJOR
    return InconsistencySeverity.CRITICAL


def possible_causes(variance: Decimal, severity: InconsistencySeverity) -> List[str]:
    """Likely explanations for a variance, by direction and severity."""
    causes = []
    if variance > 0:
        causes.append("Unrecorded receipt")
        causes.append("Customer return not booked")
        causes.append("Outgoing movement entered twice")
        if severity != InconsistencySeverity.MINOR:
            causes.append("Unrecorded incoming transfer")
    else:
        causes.append("Unrecorded sale")
        causes.append("Undeclared loss")
        causes.append("Theft or unknown shrinkage")
        if severity != InconsistencySeverity.MINOR:
            causes.append("Unrecorded outgoing transfer")
    causes.append("Counting error")

    if severity == InconsistencySeverity.CRITICAL:
        causes.append("System synchronization lag")
    return causes


def recommended_actions(variance: Decimal, severity: InconsistencySeverity) -> List[str]:
    actions = []
    if severity == InconsistencySeverity.CRITICAL:
        actions.append("Freeze operations on this product")
        actions.append("Full audit of recent movements")
        actions.append("Independent recount")
        actions.append("Supervisor approval required before adjustment")
    elif severity == InconsistencySeverity.MAJOR:
        actions.append("Immediate recount")
        actions.append("Investigate the latest movements")
        actions.append("Check transfer documents")
    else:
        actions.append("Stock adjustment entry")
        actions.append("Note in the variance journal")

    if variance < 0:
        actions.append("Look for undeclared losses and unrecorded sales")
    else:
        actions.append("Look for unrecorded receipts and customer returns")
    return actions


# =============================================================================
# Detection
# =============================================================================

def detect_inventory_inconsistencies(
    stock_levels: Iterable[StockLevel],
    counts: Sequence[PhysicalCount],
    rules: BusinessRules = DEFAULT_BUSINESS_RULES,
) -> List[InventoryInconsistency]:
    """Compare physical counts with the recorded stock.

    Args:
        stock_levels: Recorded stock snapshot
        counts: Physical counts, one per (store, product)
        rules: Supplies inventory_tolerance_percentage

    Returns:
        Inconsistencies in count order; counts within tolerance are omitted
    """
    levels = index_stock_levels(stock_levels)
    tolerance = rules.inventory_tolerance_percentage
    inconsistencies = []

    for count in counts:
        level = levels.get((count.store_id, count.product_id))
        theoretical = level.quantity if level is not None else Decimal("0")
        physical = count.physical_quantity
        variance = physical - theoretical

        if theoretical == 0:
            if physical == 0:
                continue
            percentage = HUNDRED if variance > 0 else -HUNDRED
            severity = InconsistencySeverity.CRITICAL
        else:
            percentage = variance / abs(theoretical) * HUNDRED
            severity = classify_variance(percentage, tolerance)
            if severity is None:
                continue

        inconsistencies.append(InventoryInconsistency(
            store_id=count.store_id,
            product_id=count.product_id,
            theoretical_quantity=theoretical,
            physical_quantity=physical,
            variance=variance,
            variance_percentage=percentage.quantize(PERCENTAGE_QUANTUM, rounding=ROUND_HALF_UP),
            severity=severity,
            possible_causes=possible_causes(variance, severity),
            recommended_actions=recommended_actions(variance, severity),
        ))

    if inconsistencies:
        logger.info(
            "Inventory inconsistencies detected",
            extra_fields=summarize_inconsistencies(inconsistencies),
        )
    return inconsistencies


# =============================================================================
# Remediation
# =============================================================================

def _describe(inconsistency: InventoryInconsistency) -> str:
    if inconsistency.severity == InconsistencySeverity.CRITICAL:
        return f"Full audit required - critical variance of {inconsistency.variance_percentage}%"
    if inconsistency.severity == InconsistencySeverity.MAJOR:
        return f"Investigation required - major variance of {inconsistency.variance} units"
    return f"Stock adjustment - minor variance of {inconsistency.variance} units"


def generate_reconciliation_actions(
    inconsistencies: Sequence[InventoryInconsistency],
) -> List[ReconciliationAction]:
    """One remediation proposal per inconsistency.

    Proposals are never posted here; suggested_adjustment is the signed
    quantity that would bring the recorded stock in line with the count.
    """
    actions = []
    for inconsistency in inconsistencies:
        action_type, priority, role, minutes = ACTION_POLICY[inconsistency.severity]
        actions.append(ReconciliationAction(
            store_id=inconsistency.store_id,
            product_id=inconsistency.product_id,
            action_type=action_type,
            severity=inconsistency.severity,
            priority=priority,
            required_role=role,
            description=_describe(inconsistency),
            suggested_adjustment=inconsistency.variance,
            estimated_duration_minutes=minutes,
        ))
    return actions


def summarize_inconsistencies(inconsistencies: Sequence[InventoryInconsistency]) -> Dict[str, object]:
    """Counts per severity and the net adjustment, for logs and activity output."""
    by_severity = {severity.value: 0 for severity in InconsistencySeverity}
    net_adjustment = Decimal("0")
    for inconsistency in inconsistencies:
        by_severity[inconsistency.severity.value] += 1
        net_adjustment += inconsistency.variance
    return {
        "total": len(inconsistencies),
        "by_severity": by_severity,
        "net_adjustment": str(net_adjustment),
    }
