"""Activity definitions module."""

from activities.validate import (
    assess_operation,
    AssessOperationInput,
    AssessOperationOutput,
)
from activities.reconcile import (
    reconcile_inventory_counts,
    ReconcileCountsInput,
    ReconcileCountsOutput,
)

__all__ = [
    # Risk assessment
    "assess_operation",
    "AssessOperationInput",
    "AssessOperationOutput",
    # Reconciliation
    "reconcile_inventory_counts",
    "ReconcileCountsInput",
    "ReconcileCountsOutput",
]
