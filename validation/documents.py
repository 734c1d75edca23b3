"""Document validators for receipts, transfers and inventories.

Exposes:
- validate_supplier(supplier) -> ValidationResult
- validate_bon_reception(receipt) / validate_bon_reception_draft(receipt)
- validate_transfert(transfer, stock_levels)
- validate_transfert_reception(transfer, receptions)
- validate_inventaire(inventory)
- validate_stock_consistency(stock_levels, rules)

Errors are returned in a stable order: header fields first, then lines in
index order, then document-level totals. Amounts are compared exactly; the
models parse every amount into a Decimal so no tolerance is needed.
"""

import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from core.config import DEFAULT_BUSINESS_RULES, BusinessRules
from core.models.canonical import (
    PhysicalInventory,
    ReceiptLine,
    StockLevel,
    StockReceipt,
    StockTransfer,
    Supplier,
    TransferReception,
)
from core.models.refs import StockValidationError, ValidationErrorKind, ValidationResult
from validation.fields import to_finite_decimal, validate_quantity, validate_unit_cost


# =============================================================================
# Configuration
# =============================================================================

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
LARGE_DOCUMENT_LINES = 20
LARGE_DOCUMENT_VALUE = Decimal("1000000")
RECEPTION_VARIANCE_PERCENTAGE = Decimal("10")
FUTURE_DATE_TOLERANCE = timedelta(days=1)


# =============================================================================
# Utility Functions
# =============================================================================

def _is_blank(value: Optional[str]) -> bool:
    return value is None or str(value).strip() == ""


def _error(
    field: str,
    kind: ValidationErrorKind,
    message: str,
    line_index: Optional[int] = None,
    **details,
) -> StockValidationError:
    return StockValidationError(
        field=field,
        kind=kind,
        message=message,
        line_index=line_index,
        details=details,
    )


def _duplicate_errors(product_ids: Sequence[Optional[str]], document_label: str) -> List[StockValidationError]:
    """One DUPLICATE_PRODUCT per repeated occurrence after the first."""
    first_seen: Dict[str, int] = {}
    errors = []
    for index, product_id in enumerate(product_ids):
        if _is_blank(product_id):
            continue
        if product_id in first_seen:
            errors.append(_error(
                "product_id",
                ValidationErrorKind.DUPLICATE_PRODUCT,
                f"Product {product_id} is already on this {document_label}",
                index,
                product_id=product_id,
                first_index=first_seen[product_id],
            ))
        else:
            first_seen[product_id] = index
    return errors


def index_stock_levels(stock_levels: Iterable[StockLevel]) -> Dict[Tuple[str, str], StockLevel]:
    """Index a stock snapshot by (store_id, product_id)."""
    return {(level.store_id, level.product_id): level for level in stock_levels}


def format_error_message(error: StockValidationError) -> str:
    """User-facing message, prefixed with the 1-based line number when line-scoped."""
    if error.line_index is not None:
        return f"Line {error.line_index + 1}: {error.message}"
    return error.message


# =============================================================================
# Supplier
# =============================================================================

def validate_supplier(supplier: Supplier) -> ValidationResult:
    """Validate a (possibly partial) supplier record."""
    errors = []
    if _is_blank(supplier.name):
        errors.append(_error("name", ValidationErrorKind.MISSING_SUPPLIER, "Supplier name is required"))

    if not _is_blank(supplier.email) and not EMAIL_PATTERN.match(supplier.email.strip()):
        errors.append(_error(
            "email",
            ValidationErrorKind.INVALID_EMAIL,
            "Invalid email format",
            email=supplier.email,
        ))

    return ValidationResult.from_findings(errors)


# =============================================================================
# Goods Receipt
# =============================================================================

def _is_placeholder_line(line: ReceiptLine) -> bool:
    """A line added in the form but not filled in yet."""
    return _is_blank(line.product_id) and not line.quantity_received and not line.unit_cost


def validate_receipt_line(line: ReceiptLine, line_index: int) -> List[StockValidationError]:
    """Product, quantity, cost and exact subtotal checks for one receipt line."""
    errors = []
    if _is_blank(line.product_id):
        errors.append(_error("product_id", ValidationErrorKind.MISSING_PRODUCT, "Product is required", line_index))

    quantity_errors = validate_quantity(line.quantity_received, line_index)
    cost_errors = validate_unit_cost(line.unit_cost, line_index)
    errors.extend(quantity_errors)
    errors.extend(cost_errors)

    quantity = to_finite_decimal(line.quantity_received)
    unit_cost = to_finite_decimal(line.unit_cost)
    subtotal = to_finite_decimal(line.subtotal)
    if quantity is not None and unit_cost is not None:
        expected = quantity * unit_cost
        if subtotal is None or subtotal != expected:
            errors.append(_error(
                "subtotal",
                ValidationErrorKind.CALCULATION_ERROR,
                f"Incorrect subtotal. Expected: {expected:.2f}, got: {line.subtotal}",
                line_index,
                expected=str(expected),
                actual=str(line.subtotal),
            ))
    return errors


def validate_bon_reception(
    receipt: StockReceipt,
    require_lines: bool = True,
    today: Optional[date] = None,
) -> ValidationResult:
    """Validate a goods receipt.

    Args:
        receipt: Receipt to check (never mutated)
        require_lines: False for draft saves: no lines and no date needed,
            and placeholder lines are ignored
        today: Reference date for the future-date check (defaults to today)

    Returns:
        ValidationResult with errors in header, line, total order and the
        large-document warnings
    """
    errors: List[StockValidationError] = []
    warnings: List[StockValidationError] = []

    # Header
    if _is_blank(receipt.supplier_id):
        errors.append(_error("supplier_id", ValidationErrorKind.MISSING_SUPPLIER, "Supplier is required"))
    if _is_blank(receipt.store_id):
        errors.append(_error("store_id", ValidationErrorKind.MISSING_STORE, "Receiving store is required"))

    if receipt.date is None:
        if require_lines:
            errors.append(_error("date", ValidationErrorKind.MISSING_DATE, "Reception date is required"))
    else:
        limit = (today or date.today()) + FUTURE_DATE_TOLERANCE
        if receipt.date > limit:
            errors.append(_error(
                "date",
                ValidationErrorKind.FUTURE_DATE,
                "Reception date cannot be in the future",
                date=receipt.date.isoformat(),
            ))

    # Lines
    lines = list(enumerate(receipt.lines))
    if not require_lines:
        lines = [(i, line) for i, line in lines if not _is_placeholder_line(line)]

    if require_lines and not lines:
        errors.append(_error("lines", ValidationErrorKind.EMPTY_LINES, "At least one product line is required"))

    for index, line in lines:
        errors.extend(validate_receipt_line(line, index))

    errors.extend(_duplicate_errors([line.product_id for line in receipt.lines], "receipt"))

    # Totals
    calculated_total = sum((line.subtotal for line in receipt.lines), Decimal("0"))
    if receipt.total_value != calculated_total:
        errors.append(_error(
            "total_value",
            ValidationErrorKind.TOTAL_MISMATCH,
            f"Receipt total ({receipt.total_value:.2f}) does not match the sum of lines ({calculated_total:.2f})",
            calculated=str(calculated_total),
            declared=str(receipt.total_value),
            difference=str(abs(calculated_total - receipt.total_value)),
        ))

    if len(receipt.lines) > LARGE_DOCUMENT_LINES:
        warnings.append(_error(
            "lines",
            ValidationErrorKind.LARGE_DOCUMENT,
            f"Receipt has more than {LARGE_DOCUMENT_LINES} lines, check that this is correct",
            line_count=len(receipt.lines),
        ))
    total_value = to_finite_decimal(receipt.total_value)
    if total_value is not None and total_value > LARGE_DOCUMENT_VALUE:
        warnings.append(_error(
            "total_value",
            ValidationErrorKind.LARGE_VALUE,
            "Very large amount (> 1,000,000), check the unit costs",
            total_value=str(receipt.total_value),
        ))

    return ValidationResult.from_findings(errors, warnings)


def validate_bon_reception_draft(receipt: StockReceipt, today: Optional[date] = None) -> ValidationResult:
    """Validation applied when saving a receipt as draft."""
    return validate_bon_reception(receipt, require_lines=False, today=today)


# =============================================================================
# Transfer
# =============================================================================

def validate_transfert(transfer: StockTransfer, stock_levels: Iterable[StockLevel] = ()) -> ValidationResult:
    """Validate a transfer against the source store's available stock.

    A product with no stock level at the source has nothing available.
    Requesting exactly the available quantity is allowed.
    """
    errors: List[StockValidationError] = []

    if _is_blank(transfer.source_store_id):
        errors.append(_error("source_store_id", ValidationErrorKind.MISSING_STORE, "Source store is required"))
    if _is_blank(transfer.destination_store_id):
        errors.append(_error(
            "destination_store_id", ValidationErrorKind.MISSING_STORE, "Destination store is required"
        ))
    if (
        not _is_blank(transfer.source_store_id)
        and transfer.source_store_id == transfer.destination_store_id
    ):
        errors.append(_error(
            "destination_store_id",
            ValidationErrorKind.SAME_SOURCE_DESTINATION,
            "Source and destination stores must be different",
        ))

    if not transfer.lines:
        errors.append(_error("lines", ValidationErrorKind.MISSING_LINES, "At least one transfer line is required"))
        return ValidationResult.from_findings(errors)

    levels = index_stock_levels(stock_levels)
    for index, line in enumerate(transfer.lines):
        if _is_blank(line.product_id):
            errors.append(_error("product_id", ValidationErrorKind.MISSING_PRODUCT, "Product is required", index))

        quantity_errors = validate_quantity(line.quantity_sent, index, field="quantity_sent")
        errors.extend(quantity_errors)

        if _is_blank(line.product_id) or quantity_errors:
            continue
        level = levels.get((transfer.source_store_id, line.product_id))
        available = level.available_quantity if level is not None else Decimal("0")
        if line.quantity_sent > available:
            errors.append(_error(
                "quantity_sent",
                ValidationErrorKind.INSUFFICIENT_STOCK,
                f"Insufficient stock. Available: {available}, requested: {line.quantity_sent}",
                index,
                product_id=line.product_id,
                available=str(available),
                requested=str(line.quantity_sent),
                shortage=str(line.quantity_sent - available),
            ))

    errors.extend(_duplicate_errors([line.product_id for line in transfer.lines], "transfer"))
    return ValidationResult.from_findings(errors)


def validate_transfert_reception(
    transfer: StockTransfer,
    receptions: Sequence[TransferReception],
) -> ValidationResult:
    """Validate the quantities declared at the destination for a transfer.

    Every sent product needs a reception entry and no unknown product may be
    received. A variance above 10% of the sent quantity is only a warning.
    """
    errors: List[StockValidationError] = []
    warnings: List[StockValidationError] = []

    sent = {line.product_id: line for line in transfer.lines if not _is_blank(line.product_id)}
    received_ids = set()

    for index, reception in enumerate(receptions):
        line = sent.get(reception.product_id)
        if line is None:
            errors.append(_error(
                "product_id",
                ValidationErrorKind.MISSING_PRODUCT,
                "Product is not on the original transfer",
                index,
                product_id=reception.product_id,
            ))
            continue
        received_ids.add(reception.product_id)

        quantity = to_finite_decimal(reception.quantity_received)
        if quantity is None:
            errors.append(_error(
                "quantity_received", ValidationErrorKind.INVALID_QUANTITY,
                "Received quantity must be a valid number", index,
            ))
            continue
        if quantity < 0:
            errors.append(_error(
                "quantity_received", ValidationErrorKind.NEGATIVE_QUANTITY,
                "Received quantity cannot be negative", index,
            ))
            continue

        variance = abs(quantity - line.quantity_sent)
        if line.quantity_sent > 0:
            percentage = variance / line.quantity_sent * 100
            if percentage > RECEPTION_VARIANCE_PERCENTAGE:
                warnings.append(_error(
                    "quantity_received",
                    ValidationErrorKind.RECEPTION_VARIANCE,
                    f"Large variance detected: {variance} units ({percentage:.1f}%)",
                    index,
                    sent=str(line.quantity_sent),
                    received=str(quantity),
                    variance=str(variance),
                ))

    for index, line in enumerate(transfer.lines):
        if not _is_blank(line.product_id) and line.product_id not in received_ids:
            errors.append(_error(
                "quantity_received",
                ValidationErrorKind.MISSING_COUNT,
                "Received quantity is missing for this product",
                index,
                product_id=line.product_id,
            ))

    return ValidationResult.from_findings(errors, warnings)


# =============================================================================
# Physical Inventory
# =============================================================================

def validate_inventaire(inventory: PhysicalInventory) -> ValidationResult:
    """Structural checks on a physical inventory sheet."""
    errors: List[StockValidationError] = []

    if _is_blank(inventory.store_id):
        errors.append(_error("store_id", ValidationErrorKind.MISSING_STORE, "Store is required"))
    if not inventory.lines:
        errors.append(_error("lines", ValidationErrorKind.MISSING_LINES, "At least one inventory line is required"))

    for index, line in enumerate(inventory.lines):
        if _is_blank(line.product_id):
            errors.append(_error("product_id", ValidationErrorKind.MISSING_PRODUCT, "Product is required", index))
        if line.theoretical_quantity < 0:
            errors.append(_error(
                "theoretical_quantity", ValidationErrorKind.NEGATIVE_QUANTITY,
                "Theoretical quantity cannot be negative", index,
            ))
        if line.physical_quantity is not None and line.physical_quantity < 0:
            errors.append(_error(
                "physical_quantity", ValidationErrorKind.NEGATIVE_QUANTITY,
                "Counted quantity cannot be negative", index,
            ))

    errors.extend(_duplicate_errors([line.product_id for line in inventory.lines], "inventory"))
    return ValidationResult.from_findings(errors)


# =============================================================================
# Stock Snapshot
# =============================================================================

def validate_stock_consistency(
    stock_levels: Iterable[StockLevel],
    rules: BusinessRules = DEFAULT_BUSINESS_RULES,
) -> ValidationResult:
    """Sanity checks on a stock snapshot.

    Negative stock and an available quantity that does not equal
    quantity - reserved are errors; critical and overstock levels are warnings.
    """
    errors: List[StockValidationError] = []
    warnings: List[StockValidationError] = []

    for level in stock_levels:
        where = {"store_id": level.store_id, "product_id": level.product_id}

        if level.quantity < 0:
            errors.append(_error(
                "quantity",
                ValidationErrorKind.INCONSISTENT_STOCK,
                f"Negative stock detected: {level.quantity}",
                quantity=str(level.quantity),
                **where,
            ))

        expected_available = level.quantity - level.reserved_quantity
        if level.available_quantity != expected_available:
            errors.append(_error(
                "available_quantity",
                ValidationErrorKind.INCONSISTENT_STOCK,
                "Available quantity does not match quantity minus reserved",
                available=str(level.available_quantity),
                expected=str(expected_available),
                **where,
            ))

        if 0 < level.quantity <= rules.critical_stock_threshold:
            warnings.append(_error(
                "quantity",
                ValidationErrorKind.CRITICAL_STOCK,
                f"Critical stock: {level.quantity} units",
                threshold=str(rules.critical_stock_threshold),
                **where,
            ))
        if level.quantity > rules.overstock_threshold:
            warnings.append(_error(
                "quantity",
                ValidationErrorKind.OVERSTOCK,
                f"Overstock detected: {level.quantity} units",
                threshold=str(rules.overstock_threshold),
                **where,
            ))

    return ValidationResult.from_findings(errors, warnings)
