"""Inventory reconciliation: variance detection and remediation proposals."""

from reconciliation.engine import (
    classify_variance,
    detect_inventory_inconsistencies,
    generate_reconciliation_actions,
    summarize_inconsistencies,
)

__all__ = [
    "classify_variance",
    "detect_inventory_inconsistencies",
    "generate_reconciliation_actions",
    "summarize_inconsistencies",
]
