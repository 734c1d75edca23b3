"""Weighted-average unit cost (CUMP) valuation."""

from valuation.cump import CUMP_QUANTUM, calculate_cump, calculate_cump_impact

__all__ = [
    "CUMP_QUANTUM",
    "calculate_cump",
    "calculate_cump_impact",
]
