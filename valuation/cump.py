"""Weighted-average unit cost (coût unitaire moyen pondéré, CUMP).

Exposes:
- calculate_cump(current_quantity, current_cump, quantity_received, unit_cost) -> Decimal
- calculate_cump_impact(receipt, stock_levels) -> List[CostImpact]

Nothing here writes to the stock ledger: the impacts are computed so the
caller can show them before (or post them after) validating a receipt.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Sequence, Union

from core.models.canonical import ReceiptLine, StockLevel, StockReceipt
from core.models.refs import CostImpact
from validation.documents import index_stock_levels


CUMP_QUANTUM = Decimal("0.01")


def calculate_cump(
    current_quantity: Decimal,
    current_cump: Decimal,
    quantity_received: Decimal,
    unit_cost: Decimal,
) -> Decimal:
    """New weighted-average cost after receiving ``quantity_received`` at ``unit_cost``.

    With stock on hand the result is
    (current_quantity * current_cump + quantity_received * unit_cost)
    / (current_quantity + quantity_received), rounded half-up to 0.01.
    With no stock on hand (zero or negative), or when the receipt would leave
    none (a negative correction line), the unit cost is taken as is.
    """
    current_quantity = Decimal(str(current_quantity))
    unit_cost = Decimal(str(unit_cost))
    if current_quantity <= 0:
        return unit_cost

    current_cump = Decimal(str(current_cump))
    quantity_received = Decimal(str(quantity_received))
    total_value = current_quantity * current_cump + quantity_received * unit_cost
    total_quantity = current_quantity + quantity_received
    if total_quantity <= 0:
        return unit_cost
    return (total_value / total_quantity).quantize(CUMP_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_cump_impact(
    receipt: Union[StockReceipt, Sequence[ReceiptLine]],
    stock_levels: Iterable[StockLevel] = (),
    store_id: Optional[str] = None,
) -> List[CostImpact]:
    """Per-line cost impact of a receipt, without committing anything.

    Args:
        receipt: A receipt, or bare receipt lines
        stock_levels: Current stock snapshot
        store_id: Store to read stock from (defaults to the receipt's store)

    Returns:
        One CostImpact per line, in line order. A product with no stock level
        in the store is valued from zero quantity and zero cost.
    """
    if isinstance(receipt, StockReceipt):
        lines = receipt.lines
        store_id = store_id or receipt.store_id
    else:
        lines = list(receipt)

    levels = index_stock_levels(stock_levels)
    impacts = []
    for line in lines:
        level = levels.get((store_id, line.product_id))
        current_quantity = level.quantity if level is not None else Decimal("0")
        current_cost = Decimal("0")
        if level is not None and level.average_cost is not None:
            current_cost = level.average_cost

        impacts.append(CostImpact(
            product_id=line.product_id or "",
            old_average_cost=current_cost,
            new_average_cost=calculate_cump(
                current_quantity, current_cost, line.quantity_received, line.unit_cost
            ),
        ))
    return impacts
