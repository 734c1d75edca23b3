"""Structural validation of stock documents.

Validators never raise on bad input and never log: every problem comes back
as a StockValidationError inside a ValidationResult.
"""

from validation.fields import validate_quantity, validate_unit_cost
from validation.documents import (
    format_error_message,
    validate_bon_reception,
    validate_bon_reception_draft,
    validate_inventaire,
    validate_stock_consistency,
    validate_supplier,
    validate_transfert,
    validate_transfert_reception,
)

__all__ = [
    "validate_quantity",
    "validate_unit_cost",
    "format_error_message",
    "validate_bon_reception",
    "validate_bon_reception_draft",
    "validate_inventaire",
    "validate_stock_consistency",
    "validate_supplier",
    "validate_transfert",
    "validate_transfert_reception",
]
