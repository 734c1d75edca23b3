"""Inventory reconciliation activity.

Temporal activity comparing physical counts with recorded stock and
proposing (never posting) the remediation actions.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

from temporalio import activity

from activities.validate import resolve_rules
from core.models.canonical import PhysicalCount, StockLevel
from core.observability.logging import log_activity_complete, log_activity_start, with_correlation
from reconciliation.engine import (
    detect_inventory_inconsistencies,
    generate_reconciliation_actions,
    summarize_inconsistencies,
)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ReconcileCountsInput:
    """Input for reconcile_inventory_counts activity.

    Attributes:
        stock_levels: Serialized StockLevel snapshot
        counts: Serialized PhysicalCount entries
        rules: Serialized BusinessRules (None: worker configuration)
        inventory_number: Inventory number for logging
    """
    stock_levels: List[dict]
    counts: List[dict]
    rules: Optional[dict] = None
    inventory_number: Optional[str] = None


@dataclass
class ReconcileCountsOutput:
    """Output from reconcile_inventory_counts activity.

    Attributes:
        inconsistencies: InventoryInconsistency dicts, in count order
        actions: ReconciliationAction dicts, one per inconsistency
        summary: Counts per severity and net adjustment
    """
    inconsistencies: List[dict] = field(default_factory=list)
    actions: List[dict] = field(default_factory=list)
    summary: dict = field(default_factory=dict)


# =============================================================================
# Activity Definition
# =============================================================================

@activity.defn
async def reconcile_inventory_counts(input: ReconcileCountsInput) -> ReconcileCountsOutput:
    """Detect count variances and propose reconciliation actions.

    Args:
        input: ReconcileCountsInput with stock snapshot and physical counts

    Returns:
        ReconcileCountsOutput; nothing is written to the stock ledger
    """
    started = time.monotonic()
    stock_levels = [StockLevel.model_validate(level) for level in input.stock_levels]
    counts = [PhysicalCount.model_validate(count) for count in input.counts]

    with with_correlation(
        activity_name="reconcile_inventory_counts",
        document_number=input.inventory_number,
        document_type="inventory",
    ):
        log_activity_start("reconcile_inventory_counts", count_lines=len(counts))
        inconsistencies = detect_inventory_inconsistencies(stock_levels, counts, resolve_rules(input.rules))
        actions = generate_reconciliation_actions(inconsistencies)
        summary = summarize_inconsistencies(inconsistencies)
        log_activity_complete(
            "reconcile_inventory_counts",
            duration_ms=(time.monotonic() - started) * 1000,
            **summary,
        )

    if inconsistencies:
        activity.logger.warning(
            f"Inventory {input.inventory_number or ''}: {summary['total']} inconsistencies "
            f"(net adjustment {summary['net_adjustment']})"
        )
    else:
        activity.logger.info(f"Inventory {input.inventory_number or ''}: counts within tolerance")

    return ReconcileCountsOutput(
        inconsistencies=[i.model_dump(mode="json") for i in inconsistencies],
        actions=[a.model_dump(mode="json") for a in actions],
        summary=summary,
    )
