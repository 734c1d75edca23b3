"""Risk evaluators for candidate stock operations.

Each evaluator looks at one aspect of an operation (value, quantity, timing,
frequency, stock availability...) and returns a RiskFinding or None. The
assessor folds the findings of DEFAULT_RISK_EVALUATORS, in order, into a
single risk level.

Evaluator signature:
    evaluator(operation, context, stock_levels, rules) -> Optional[RiskFinding]

None of the built-in evaluators reports CRITICAL; that level is reserved for
evaluators supplied by the host application.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Set, Tuple, Union

from core.config import BusinessRules
from core.models.canonical import (
    InventoryOperation,
    OperationContext,
    OperationEnvelope,
    PhysicalInventory,
    ReceiptOperation,
    StockLevel,
    StockReceipt,
    StockTransfer,
    TransferOperation,
)
from core.models.refs import RiskLevel, ValidationErrorKind
from validation.documents import index_stock_levels, validate_stock_consistency
from validation.fields import to_finite_decimal


Operation = Union[ReceiptOperation, TransferOperation, InventoryOperation]


@dataclass(frozen=True)
class RiskFinding:
    """One risk factor raised by an evaluator."""
    severity: RiskLevel
    factor: str
    recommendations: Tuple[str, ...] = field(default_factory=tuple)


RiskEvaluator = Callable[
    [Operation, OperationContext, Sequence[StockLevel], BusinessRules],
    Optional[RiskFinding],
]


# =============================================================================
# Operation Helpers
# =============================================================================

def coerce_operation(value) -> Operation:
    """Accept a tagged operation, a bare document or a plain dict.

    Raises:
        TypeError: If the value is not a receipt, transfer or inventory
    """
    if isinstance(value, (ReceiptOperation, TransferOperation, InventoryOperation)):
        return value
    if isinstance(value, StockReceipt):
        return ReceiptOperation(document=value)
    if isinstance(value, StockTransfer):
        return TransferOperation(document=value)
    if isinstance(value, PhysicalInventory):
        return InventoryOperation(document=value)
    if isinstance(value, dict):
        return OperationEnvelope.model_validate({"operation": value}).operation
    raise TypeError(f"Unsupported stock operation: {type(value).__name__}")


def operation_store_id(operation: Operation) -> Optional[str]:
    if isinstance(operation, TransferOperation):
        return operation.document.source_store_id
    return operation.document.store_id


def _inventory_line_variance(line) -> Decimal:
    if line.variance is not None:
        return line.variance
    if line.physical_quantity is None:
        return Decimal("0")
    return line.physical_quantity - line.theoretical_quantity


def line_quantities(operation: Operation) -> List[Decimal]:
    """Quantity moved by each line (inventory lines move |variance|).

    Lines whose quantity is not a finite number are skipped; the structural
    validators already report them.
    """
    if isinstance(operation, ReceiptOperation):
        raw = [line.quantity_received for line in operation.document.lines]
    elif isinstance(operation, TransferOperation):
        raw = [line.quantity_sent for line in operation.document.lines]
    elif isinstance(operation, InventoryOperation):
        raw = [abs(_inventory_line_variance(line)) for line in operation.document.lines]
    else:
        raise TypeError(f"Unsupported stock operation: {type(operation).__name__}")

    quantities = []
    for value in raw:
        number = to_finite_decimal(value)
        if number is not None:
            quantities.append(number)
    return quantities


def operation_value(operation: Operation) -> Decimal:
    """Monetary value of an operation.

    Receipts: sum of line subtotals. Transfers: quantity x unit cost for the
    lines that carry a cost. Inventories: sum of absolute variance values.
    """
    values = []
    if isinstance(operation, ReceiptOperation):
        values = [line.subtotal for line in operation.document.lines]
    elif isinstance(operation, TransferOperation):
        values = [
            line.quantity_sent * line.unit_cost
            for line in operation.document.lines
            if line.unit_cost is not None
        ]
    elif isinstance(operation, InventoryOperation):
        for line in operation.document.lines:
            if line.variance_value is not None:
                values.append(abs(line.variance_value))
            else:
                values.append(abs(_inventory_line_variance(line) * line.unit_cost))
    else:
        raise TypeError(f"Unsupported stock operation: {type(operation).__name__}")

    total = Decimal("0")
    for value in values:
        number = to_finite_decimal(value)
        if number is not None:
            total += number
    return total


def as_utc_naive(moment: datetime) -> datetime:
    """Aware datetimes converted to UTC; naive ones are taken as UTC already."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def touched_stock_pairs(operation: Operation) -> Set[Tuple[str, str]]:
    """(store_id, product_id) pairs whose stock the operation would change."""
    document = operation.document
    product_ids = [line.product_id for line in document.lines if line.product_id]
    if isinstance(operation, TransferOperation):
        stores = [document.source_store_id, document.destination_store_id]
    else:
        stores = [document.store_id]
    return {(store, product) for store in stores if store for product in product_ids}


# =============================================================================
# Evaluators
# =============================================================================

def assess_value(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    """Operation value above max_value_per_operation."""
    value = operation_value(operation)
    if value > rules.max_value_per_operation:
        return RiskFinding(
            RiskLevel.HIGH,
            f"Operation value {value} exceeds the maximum of {rules.max_value_per_operation}",
            ("Director approval required", "Attach supporting documents"),
        )
    return None


def assess_line_quantity(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    """Any single line above max_quantity_per_operation; twice the maximum is HIGH."""
    quantities = line_quantities(operation)
    if not quantities:
        return None
    largest = max(quantities)
    if largest <= rules.max_quantity_per_operation:
        return None
    if largest > rules.max_quantity_per_operation * 2:
        return RiskFinding(
            RiskLevel.HIGH,
            f"Exceptionally large quantity: {largest} units",
            ("Check the justification for this quantity", "Consider splitting the operation"),
        )
    return RiskFinding(
        RiskLevel.MEDIUM,
        f"Large quantity: {largest} units",
        ("Double-check the quantity",),
    )


def assess_historical_quantity(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    """Total quantity more than three times the historical average."""
    history = context.historical_data
    if history is None or history.average_quantity <= 0:
        return None
    total = sum(line_quantities(operation), Decimal("0"))
    if total > history.average_quantity * 3:
        return RiskFinding(
            RiskLevel.MEDIUM,
            f"Quantity {total} is more than 3x the historical average ({history.average_quantity})",
            ("Analyse the reason for this variation",),
        )
    return None


def assess_cost_variance(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    """Receipt unit costs deviating from the historical average cost."""
    history = context.historical_data
    if not isinstance(operation, ReceiptOperation) or history is None or history.average_cost <= 0:
        return None

    deviations = []
    for index, line in enumerate(operation.document.lines):
        unit_cost = to_finite_decimal(line.unit_cost)
        if not unit_cost:
            continue
        variance = abs(unit_cost - history.average_cost) / history.average_cost * 100
        if variance > rules.max_cost_variance_percentage:
            deviations.append(f"line {index + 1}: {variance:.1f}%")

    if not deviations:
        return None
    return RiskFinding(
        RiskLevel.MEDIUM,
        "Unit cost deviates from the historical average (" + ", ".join(deviations) + ")",
        ("Check the supplier's unit costs",),
    )


def assess_frequency(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    """More operations than max_operations_per_hour in the last hour."""
    now = as_utc_naive(context.timestamp)
    window_start = now - timedelta(hours=1)
    count = sum(
        1 for op in context.recent_operations
        if window_start <= as_utc_naive(op.timestamp) <= now
    )
    if count > rules.max_operations_per_hour:
        return RiskFinding(
            RiskLevel.MEDIUM,
            f"High frequency: {count} operations in the last hour",
            ("Check that all these operations are needed", "Group similar operations"),
        )
    return None


def assess_rapid_succession(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    """Previous operation closer than min_time_between_operations."""
    now = as_utc_naive(context.timestamp)
    earlier = [as_utc_naive(op.timestamp) for op in context.recent_operations]
    earlier = [moment for moment in earlier if moment < now]
    if not earlier:
        return None
    elapsed = now - max(earlier)
    minutes = Decimal(str(elapsed.total_seconds())) / 60
    if minutes < rules.min_time_between_operations:
        return RiskFinding(
            RiskLevel.MEDIUM,
            f"Rapid succession: {minutes:.1f} minutes since the previous operation",
            ("Check that this operation is not a duplicate",),
        )
    return None


def assess_business_hours(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    hour = context.timestamp.hour
    hours = rules.business_hours
    if hour < hours.start or hour > hours.end:
        return RiskFinding(
            RiskLevel.MEDIUM,
            f"Operation outside business hours: {hour}h",
            ("Justify the need for an out-of-hours operation",),
        )
    return None


def assess_weekend(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    if context.timestamp.weekday() >= 5:
        return RiskFinding(
            RiskLevel.LOW,
            "Operation performed on a weekend",
            ("Document the reason for this weekend operation",),
        )
    return None


def assess_stock_availability(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    """Transfer lines asking for more than the source store has available."""
    if not isinstance(operation, TransferOperation):
        return None
    transfer = operation.document
    levels = index_stock_levels(stock_levels)

    short = []
    for line in transfer.lines:
        quantity = to_finite_decimal(line.quantity_sent)
        if not line.product_id or quantity is None or quantity <= 0:
            continue
        level = levels.get((transfer.source_store_id, line.product_id))
        available = level.available_quantity if level is not None else Decimal("0")
        if quantity > available:
            short.append(line.product_id)

    if not short:
        return None
    return RiskFinding(
        RiskLevel.HIGH,
        "Insufficient stock at the source store for: " + ", ".join(short),
        ("Reduce the transferred quantities or replenish the source store",),
    )


def assess_stock_consistency(operation, context, stock_levels, rules) -> Optional[RiskFinding]:
    """Inconsistent stock records for the products the operation touches."""
    result = validate_stock_consistency(touched_stock_levels(operation, stock_levels), rules)
    if result.is_valid:
        return None
    products = sorted({e.details.get("product_id", "") for e in result.errors
                       if e.kind == ValidationErrorKind.INCONSISTENT_STOCK})
    return RiskFinding(
        RiskLevel.HIGH,
        "Stock inconsistencies detected for: " + ", ".join(products),
        ("Resolve the stock inconsistencies before continuing",),
    )


def touched_stock_levels(operation: Operation, stock_levels: Sequence[StockLevel]) -> List[StockLevel]:
    pairs = touched_stock_pairs(operation)
    return [level for level in stock_levels if (level.store_id, level.product_id) in pairs]


DEFAULT_RISK_EVALUATORS: Tuple[RiskEvaluator, ...] = (
    assess_value,
    assess_line_quantity,
    assess_historical_quantity,
    assess_cost_variance,
    assess_frequency,
    assess_rapid_succession,
    assess_business_hours,
    assess_weekend,
    assess_stock_availability,
    assess_stock_consistency,
)
