"""Risk assessor tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.config import BusinessHours, BusinessRules
from core.models.canonical import InventoryOperation, ReceiptOperation, TransferOperation
from core.models.refs import RiskLevel, ValidationErrorKind as K
from risk.assessor import assess_risk, fold_findings, validate_comprehensive, validate_operation
from risk.rules import (
    RiskFinding,
    assess_business_hours,
    assess_cost_variance,
    assess_frequency,
    assess_historical_quantity,
    assess_line_quantity,
    assess_rapid_succession,
    assess_value,
    assess_weekend,
    coerce_operation,
    operation_value,
)

from conftest import NOW

RULES = BusinessRules()


class TestOperationHelpers:

    def test_coerce_accepts_documents_and_dicts(self, make_receipt, make_transfer, make_inventory):
        assert isinstance(coerce_operation(make_receipt()), ReceiptOperation)
        assert isinstance(coerce_operation(make_transfer()), TransferOperation)
        assert isinstance(coerce_operation(make_inventory()), InventoryOperation)

        op = coerce_operation({"kind": "transfer", "document": {"storeSourceId": "S1", "storeDestinationId": "S2"}})
        assert isinstance(op, TransferOperation)
        assert op.document.source_store_id == "S1"

    def test_unknown_operation_type(self):
        with pytest.raises(TypeError):
            coerce_operation(["not", "an", "operation"])

    def test_operation_value(self, make_receipt, make_transfer, make_inventory):
        assert operation_value(coerce_operation(make_receipt())) == Decimal("65000")
        transfer = make_transfer(lines=[("P1", 10, 100), ("P2", 5)])
        assert operation_value(coerce_operation(transfer)) == Decimal("1000")

        inventory = make_inventory()
        lines = [inventory.lines[0].model_copy(update={"physical_quantity": Decimal("8")}), inventory.lines[1]]
        inventory = inventory.model_copy(update={"lines": lines})
        assert operation_value(coerce_operation(inventory)) == Decimal("200")


class TestEvaluators:

    def test_value_above_maximum_is_high(self, make_receipt, make_context):
        receipt = coerce_operation(make_receipt(lines=[(1000, 6000)]))
        finding = assess_value(receipt, make_context(), [], RULES)
        assert finding.severity == RiskLevel.HIGH

    def test_value_at_maximum_is_fine(self, make_receipt, make_context):
        receipt = coerce_operation(make_receipt(lines=[(1000, 5000)]))
        assert assess_value(receipt, make_context(), [], RULES) is None

    @pytest.mark.parametrize("quantity,expected", [
        (1000, None),
        (1001, RiskLevel.MEDIUM),
        (2000, RiskLevel.MEDIUM),
        (2001, RiskLevel.HIGH),
    ])
    def test_line_quantity_bands(self, make_receipt, make_context, quantity, expected):
        receipt = coerce_operation(make_receipt(lines=[(quantity, 1)]))
        finding = assess_line_quantity(receipt, make_context(), [], RULES)
        assert (finding.severity if finding else None) == expected

    def test_historical_quantity(self, make_receipt, make_context):
        receipt = coerce_operation(make_receipt(lines=[(31, 1)]))
        context = make_context(history={"average_quantity": 10})
        assert assess_historical_quantity(receipt, context, [], RULES).severity == RiskLevel.MEDIUM
        assert assess_historical_quantity(receipt, make_context(), [], RULES) is None

    def test_cost_variance_only_for_receipts(self, make_receipt, make_transfer, make_context):
        context = make_context(history={"average_cost": 100})
        receipt = coerce_operation(make_receipt(lines=[(1, 126), (1, 100), (1, 50)]))
        finding = assess_cost_variance(receipt, context, [], RULES)
        assert finding.severity == RiskLevel.MEDIUM
        assert "line 1" in finding.factor and "line 3" in finding.factor
        assert "line 2" not in finding.factor

        transfer = coerce_operation(make_transfer(lines=[("P1", 1, 500)]))
        assert assess_cost_variance(transfer, context, [], RULES) is None

    def test_frequency_window(self, make_receipt, make_context):
        rules = BusinessRules(max_operations_per_hour=2)
        receipt = coerce_operation(make_receipt())
        in_window = [NOW - timedelta(minutes=m) for m in (10, 30, 60)]
        finding = assess_frequency(receipt, make_context(recent=in_window), [], rules)
        assert finding.severity == RiskLevel.MEDIUM

        outside = [NOW - timedelta(minutes=m) for m in (10, 30, 61)]
        assert assess_frequency(receipt, make_context(recent=outside), [], rules) is None

    def test_rapid_succession(self, make_receipt, make_context):
        receipt = coerce_operation(make_receipt())
        close = make_context(recent=[NOW - timedelta(minutes=30), NOW - timedelta(seconds=90)])
        assert assess_rapid_succession(receipt, close, [], RULES).severity == RiskLevel.MEDIUM

        spaced = make_context(recent=[NOW - timedelta(minutes=2)])
        assert assess_rapid_succession(receipt, spaced, [], RULES) is None

    def test_later_operations_are_not_previous(self, make_receipt, make_context):
        receipt = coerce_operation(make_receipt())
        context = make_context(recent=[NOW + timedelta(seconds=30)])
        assert assess_rapid_succession(receipt, context, [], RULES) is None

    def test_mixed_naive_and_aware_timestamps(self, make_receipt, make_context):
        receipt = coerce_operation(make_receipt())
        aware_now = datetime(2025, 3, 5, 10, 0, tzinfo=timezone.utc)
        context = make_context(timestamp=aware_now, recent=[datetime(2025, 3, 5, 9, 59, 30)])
        assert assess_rapid_succession(receipt, context, [], RULES).severity == RiskLevel.MEDIUM
        assert assess_frequency(receipt, context, [], RULES) is None

        # UTC+1 offset: 10:59:30 local is 09:59:30 UTC
        paris = timezone(timedelta(hours=1))
        context = make_context(recent=[datetime(2025, 3, 5, 10, 59, 30, tzinfo=paris)])
        assert assess_rapid_succession(receipt, context, [], RULES).severity == RiskLevel.MEDIUM

    @pytest.mark.parametrize("hour,flagged", [(5, True), (6, False), (22, False), (23, True)])
    def test_business_hours(self, make_receipt, make_context, hour, flagged):
        receipt = coerce_operation(make_receipt())
        context = make_context(timestamp=NOW.replace(hour=hour))
        finding = assess_business_hours(receipt, context, [], BusinessRules(business_hours=BusinessHours(start=6, end=22)))
        assert (finding is not None) == flagged

    def test_weekend_is_low(self, make_receipt, make_context):
        receipt = coerce_operation(make_receipt())
        saturday = make_context(timestamp=datetime(2025, 3, 8, 10, 0))
        assert assess_weekend(receipt, saturday, [], RULES).severity == RiskLevel.LOW
        assert assess_weekend(receipt, make_context(), [], RULES) is None


class TestAssessment:

    def test_quiet_operation_is_low(self, make_receipt, make_context):
        assessment = assess_risk(make_receipt(), make_context())
        assert assessment.level == RiskLevel.LOW
        assert assessment.risk_factors == []
        assert not assessment.requires_approval

    def test_level_is_maximum_of_findings(self, make_receipt, make_context):
        receipt = make_receipt(lines=[(2001, 1)])
        context = make_context(timestamp=NOW.replace(hour=23))
        assessment = assess_risk(receipt, context)
        assert assessment.level == RiskLevel.HIGH
        assert assessment.requires_approval
        assert len(assessment.risk_factors) == 2

    def test_medium_does_not_require_approval(self, make_receipt, make_context):
        assessment = assess_risk(make_receipt(), make_context(timestamp=NOW.replace(hour=23)))
        assert assessment.level == RiskLevel.MEDIUM
        assert not assessment.requires_approval

    def test_custom_evaluator_may_raise_critical(self, make_receipt, make_context):
        def always_critical(operation, context, stock_levels, rules):
            return RiskFinding(RiskLevel.CRITICAL, "Blocked supplier", ("Escalate",))

        assessment = assess_risk(make_receipt(), make_context(), evaluators=[assess_weekend, always_critical])
        assert assessment.level == RiskLevel.CRITICAL
        assert assessment.requires_approval
        assert assessment.recommendations == ["Escalate"]

    def test_fold_deduplicates_recommendations(self):
        assessment = fold_findings([
            RiskFinding(RiskLevel.MEDIUM, "a", ("check",)),
            None,
            RiskFinding(RiskLevel.LOW, "b", ("check", "other")),
        ])
        assert assessment.level == RiskLevel.MEDIUM
        assert assessment.risk_factors == ["a", "b"]
        assert assessment.recommendations == ["check", "other"]

    def test_assessment_is_repeatable(self, make_transfer, make_context, make_level):
        transfer = make_transfer(lines=[("P1", 50)])
        levels = [make_level("S1", "P1", 10)]
        first = assess_risk(transfer, make_context(), levels)
        second = assess_risk(transfer, make_context(), levels)
        assert first == second


class TestComprehensiveValidation:

    def test_valid_receipt_end_to_end(self, make_receipt, make_context):
        result = validate_comprehensive(make_receipt(total=Decimal("65000")), make_context())
        assert result.is_valid
        assert result.risk_level == RiskLevel.LOW

    def test_aware_context_timestamp_end_to_end(self, make_receipt, make_context):
        context = make_context(
            timestamp=datetime(2025, 3, 5, 10, 0, tzinfo=timezone.utc),
            recent=[datetime(2025, 3, 5, 9, 59, 30)],
        )
        result = validate_comprehensive(make_receipt(total=Decimal("65000")), context)
        assert result.is_valid
        assert result.risk_level == RiskLevel.MEDIUM

    def test_total_mismatch_end_to_end(self, make_receipt, make_context):
        result = validate_comprehensive(make_receipt(total=Decimal("60000")), make_context())
        assert not result.is_valid
        assert result.kinds() == [K.TOTAL_MISMATCH]

    def test_risk_does_not_invalidate(self, make_receipt, make_context):
        receipt = make_receipt(lines=[(1000, 6000)])
        result = validate_comprehensive(receipt, make_context())
        assert result.is_valid
        assert result.risk_level == RiskLevel.HIGH
        assert result.requires_approval

    def test_insufficient_stock_is_error_and_high_risk(self, make_transfer, make_context, make_level):
        transfer = make_transfer(lines=[("P1", 50)])
        result = validate_comprehensive(transfer, make_context(), [make_level("S1", "P1", 10)])
        assert result.kinds() == [K.INSUFFICIENT_STOCK]
        assert result.risk_level == RiskLevel.HIGH

    def test_inconsistent_stock_raises_risk(self, make_transfer, make_context, make_level):
        transfer = make_transfer(lines=[("P1", 5)])
        levels = [
            make_level("S1", "P1", 10),
            make_level("S2", "P1", 3, available=7),
            make_level("S9", "P1", -5),
        ]
        result = validate_comprehensive(transfer, make_context(), levels)
        assert result.is_valid
        assert result.risk_level == RiskLevel.HIGH
        assert [w.kind for w in result.warnings] == [K.CRITICAL_STOCK]

    def test_dispatch_by_kind(self, make_inventory):
        result = validate_operation({"kind": "inventory", "document": make_inventory(lines=[]).model_dump()})
        assert result.kinds() == [K.MISSING_LINES]
