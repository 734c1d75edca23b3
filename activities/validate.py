"""Risk assessment activity for stock operations.

Temporal activity wrapping validate_comprehensive so a workflow can assess a
candidate receipt, transfer or inventory with retries owned by Temporal.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

from temporalio import activity

from core.config import BusinessRules, load_business_rules
from core.models.canonical import OperationContext, OperationEnvelope, StockLevel
from core.observability.logging import log_activity_complete, log_activity_start, with_correlation
from risk.assessor import validate_comprehensive


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class AssessOperationInput:
    """Input for assess_operation activity.

    Attributes:
        operation: Candidate operation as a dict with a "kind" key
            (receipt, transfer, inventory) and a "document"
        context: Serialized OperationContext
        stock_levels: Serialized StockLevel snapshot
        rules: Serialized BusinessRules (None: worker configuration)
    """
    operation: dict
    context: dict
    stock_levels: List[dict] = field(default_factory=list)
    rules: Optional[dict] = None


@dataclass
class AssessOperationOutput:
    """Output from assess_operation activity.

    Attributes:
        is_valid: False when any structural error was found
        risk_level: LOW, MEDIUM, HIGH or CRITICAL
        requires_approval: True for HIGH and CRITICAL
        result: Full AdvancedValidationResult as JSON-compatible dict
    """
    is_valid: bool
    risk_level: str
    requires_approval: bool
    result: dict


def resolve_rules(rules: Optional[dict]) -> BusinessRules:
    """Rules sent by the workflow, else the worker's environment configuration."""
    if rules:
        return BusinessRules.model_validate(rules)
    return load_business_rules()


# =============================================================================
# Activity Definition
# =============================================================================

@activity.defn
async def assess_operation(input: AssessOperationInput) -> AssessOperationOutput:
    """Validate and risk-score a candidate stock operation.

    Args:
        input: AssessOperationInput with the operation, context and stock snapshot

    Returns:
        AssessOperationOutput with the headline outcome and the full result
    """
    started = time.monotonic()
    operation = OperationEnvelope.model_validate({"operation": input.operation}).operation
    context = OperationContext.model_validate(input.context)
    stock_levels = [StockLevel.model_validate(level) for level in input.stock_levels]

    with with_correlation(activity_name="assess_operation", user_id=context.user_id):
        log_activity_start("assess_operation", kind=operation.kind, document_number=operation.document.number)
        result = validate_comprehensive(operation, context, stock_levels, resolve_rules(input.rules))
        log_activity_complete(
            "assess_operation",
            duration_ms=(time.monotonic() - started) * 1000,
            risk_level=result.risk_level.value,
            is_valid=result.is_valid,
        )

    activity.logger.info(
        f"Assessed {operation.kind} {operation.document.number or ''}: "
        f"valid={result.is_valid} risk={result.risk_level.value}"
    )
    return AssessOperationOutput(
        is_valid=result.is_valid,
        risk_level=result.risk_level.value,
        requires_approval=result.requires_approval,
        result=result.model_dump(mode="json"),
    )
