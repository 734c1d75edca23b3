"""Single-value validators for quantities and unit costs.

Each validator returns at most one StockValidationError. Input may be a raw
value straight from a form (None, str, float) so nothing here assumes the
value has already been parsed into a Decimal.
"""

from decimal import Decimal, InvalidOperation
from typing import List, Optional

from core.models.refs import StockValidationError, ValidationErrorKind


def to_finite_decimal(value) -> Optional[Decimal]:
    """Convert a numeric value to Decimal, or None when it is not a finite number.

    Strings and booleans are rejected: a quantity typed as "10" has not been
    through the form parser and is treated as invalid.
    """
    if value is None or isinstance(value, (bool, str)):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        try:
            number = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return None
    else:
        return None
    if not number.is_finite():
        return None
    return number


def _check_positive(
    value,
    field: str,
    line_index: Optional[int],
    label: str,
    invalid: ValidationErrorKind,
    zero: ValidationErrorKind,
    negative: ValidationErrorKind,
) -> List[StockValidationError]:
    number = to_finite_decimal(value)
    if number is None:
        kind, message = invalid, f"{label} must be a valid number"
    elif number == 0:
        kind, message = zero, f"{label} must be greater than zero"
    elif number < 0:
        kind, message = negative, f"{label} cannot be negative"
    else:
        return []
    return [
        StockValidationError(
            field=field,
            kind=kind,
            message=message,
            line_index=line_index,
            details={"value": str(value)},
        )
    ]


def validate_quantity(
    quantity,
    line_index: Optional[int] = None,
    field: str = "quantity_received",
) -> List[StockValidationError]:
    """Validate a line quantity.

    Returns:
        [] when the quantity is a finite number > 0, otherwise exactly one of
        INVALID_QUANTITY, ZERO_QUANTITY or NEGATIVE_QUANTITY
    """
    return _check_positive(
        quantity,
        field,
        line_index,
        "Quantity",
        ValidationErrorKind.INVALID_QUANTITY,
        ValidationErrorKind.ZERO_QUANTITY,
        ValidationErrorKind.NEGATIVE_QUANTITY,
    )


def validate_unit_cost(
    unit_cost,
    line_index: Optional[int] = None,
    field: str = "unit_cost",
) -> List[StockValidationError]:
    """Validate a unit cost. Same contract as validate_quantity with *_COST kinds."""
    return _check_positive(
        unit_cost,
        field,
        line_index,
        "Unit cost",
        ValidationErrorKind.INVALID_COST,
        ValidationErrorKind.ZERO_COST,
        ValidationErrorKind.NEGATIVE_COST,
    )
