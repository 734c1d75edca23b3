"""Heuristic risk scoring of candidate stock operations."""

from risk.assessor import assess_risk, fold_findings, validate_comprehensive, validate_operation
from risk.rules import DEFAULT_RISK_EVALUATORS, RiskFinding, coerce_operation

__all__ = [
    "DEFAULT_RISK_EVALUATORS",
    "RiskFinding",
    "assess_risk",
    "coerce_operation",
    "fold_findings",
    "validate_comprehensive",
    "validate_operation",
]
