"""Risk assessment entry points.

Exposes:
- assess_risk(operation, context, stock_levels, rules) -> RiskAssessment
- validate_operation(operation, stock_levels, today) -> ValidationResult
- validate_comprehensive(operation, context, stock_levels, rules) -> AdvancedValidationResult

Risk is advisory: a HIGH or CRITICAL level only sets requires_approval, it
never makes a structurally valid operation invalid.
"""

from datetime import date
from typing import Iterable, List, Optional, Sequence

from core.config import DEFAULT_BUSINESS_RULES, BusinessRules
from core.models.canonical import (
    InventoryOperation,
    OperationContext,
    ReceiptOperation,
    StockLevel,
    TransferOperation,
)
from core.models.refs import (
    APPROVAL_LEVELS,
    AdvancedValidationResult,
    RiskAssessment,
    RiskLevel,
    ValidationResult,
)
from core.observability.logging import get_logger, with_correlation
from risk.rules import (
    DEFAULT_RISK_EVALUATORS,
    RiskEvaluator,
    RiskFinding,
    coerce_operation,
    operation_store_id,
    touched_stock_levels,
)
from validation.documents import (
    validate_bon_reception,
    validate_inventaire,
    validate_stock_consistency,
    validate_transfert,
)


logger = get_logger(__name__)


def fold_findings(findings: Iterable[Optional[RiskFinding]]) -> RiskAssessment:
    """Combine findings into one assessment at the highest severity seen."""
    level = RiskLevel.LOW
    factors: List[str] = []
    recommendations: List[str] = []
    for finding in findings:
        if finding is None:
            continue
        if finding.severity.rank > level.rank:
            level = finding.severity
        factors.append(finding.factor)
        for recommendation in finding.recommendations:
            if recommendation not in recommendations:
                recommendations.append(recommendation)

    return RiskAssessment(
        level=level,
        risk_factors=factors,
        recommendations=recommendations,
        requires_approval=level in APPROVAL_LEVELS,
    )


def assess_risk(
    operation,
    context: OperationContext,
    stock_levels: Sequence[StockLevel] = (),
    rules: BusinessRules = DEFAULT_BUSINESS_RULES,
    evaluators: Sequence[RiskEvaluator] = DEFAULT_RISK_EVALUATORS,
) -> RiskAssessment:
    """Run the evaluator pipeline over an operation.

    Args:
        operation: Tagged operation, bare document or plain dict
        context: Acting user, timestamp and recent history
        stock_levels: Current stock snapshot
        rules: Business thresholds
        evaluators: Ordered evaluators (defaults to DEFAULT_RISK_EVALUATORS)

    Returns:
        RiskAssessment; LOW with no factors when nothing was raised
    """
    operation = coerce_operation(operation)
    stock_levels = list(stock_levels)
    return fold_findings(
        evaluator(operation, context, stock_levels, rules) for evaluator in evaluators
    )


def validate_operation(
    operation,
    stock_levels: Sequence[StockLevel] = (),
    today: Optional[date] = None,
) -> ValidationResult:
    """Structural validation for whichever document the operation carries.

    Raises:
        TypeError: If the operation is not a receipt, transfer or inventory
    """
    operation = coerce_operation(operation)
    if isinstance(operation, ReceiptOperation):
        return validate_bon_reception(operation.document, today=today)
    if isinstance(operation, TransferOperation):
        return validate_transfert(operation.document, stock_levels)
    if isinstance(operation, InventoryOperation):
        return validate_inventaire(operation.document)
    raise TypeError(f"Unsupported stock operation: {type(operation).__name__}")


def validate_comprehensive(
    operation,
    context: OperationContext,
    stock_levels: Sequence[StockLevel] = (),
    rules: BusinessRules = DEFAULT_BUSINESS_RULES,
    evaluators: Sequence[RiskEvaluator] = DEFAULT_RISK_EVALUATORS,
) -> AdvancedValidationResult:
    """Structural validation merged with the risk assessment.

    Structural errors decide is_valid; risk findings only raise the level
    and requires_approval. Warnings from the touched stock records are added
    to the document warnings.
    """
    operation = coerce_operation(operation)
    stock_levels = list(stock_levels)
    document = operation.document

    with with_correlation(
        document_number=document.number,
        document_type=operation.kind,
        store_id=operation_store_id(operation) or context.store_id,
        user_id=context.user_id,
        operation="validate_comprehensive",
    ):
        structural = validate_operation(operation, stock_levels, today=context.timestamp.date())
        assessment = assess_risk(operation, context, stock_levels, rules, evaluators)
        stock_warnings = validate_stock_consistency(
            touched_stock_levels(operation, stock_levels), rules
        ).warnings

        result = AdvancedValidationResult(
            is_valid=structural.is_valid,
            errors=structural.errors,
            warnings=structural.warnings + stock_warnings,
            risk_level=assessment.level,
            risk_factors=assessment.risk_factors,
            recommendations=assessment.recommendations,
            requires_approval=assessment.requires_approval,
        )

        extra = {
            "is_valid": result.is_valid,
            "error_count": len(result.errors),
            "warning_count": len(result.warnings),
            "risk_level": result.risk_level.value,
            "risk_factors": result.risk_factors,
        }
        if result.requires_approval:
            logger.warning("Operation requires approval", extra_fields=extra)
        else:
            logger.info("Operation assessed", extra_fields=extra)

    return result
