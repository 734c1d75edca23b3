"""Inventory reconciliation tests."""

from decimal import Decimal

import pytest

from core.config import BusinessRules
from core.models.canonical import PhysicalCount
from core.models.refs import InconsistencySeverity as S, ReconciliationActionType
from reconciliation.engine import (
    classify_variance,
    detect_inventory_inconsistencies,
    generate_reconciliation_actions,
    possible_causes,
    summarize_inconsistencies,
)


def count(product_id, quantity, store_id="S1"):
    return PhysicalCount(store_id=store_id, product_id=product_id, physical_quantity=quantity)


class TestClassification:

    @pytest.mark.parametrize("percentage,expected", [
        ("0", None),
        ("5", None),
        ("-5", None),
        ("5.01", S.MINOR),
        ("-10", S.MINOR),
        ("10.5", S.MAJOR),
        ("-25", S.MAJOR),
        ("25.01", S.CRITICAL),
    ])
    def test_bands_scale_with_tolerance(self, percentage, expected):
        assert classify_variance(Decimal(percentage), Decimal("5")) == expected

    def test_causes_follow_direction(self):
        assert "Unrecorded sale" in possible_causes(Decimal("-3"), S.MINOR)
        assert "Unrecorded receipt" in possible_causes(Decimal("3"), S.MINOR)
        assert "Unrecorded outgoing transfer" not in possible_causes(Decimal("-3"), S.MINOR)
        assert "System synchronization lag" in possible_causes(Decimal("-3"), S.CRITICAL)


class TestDetection:

    def test_shortage_is_major(self, make_level):
        found = detect_inventory_inconsistencies([make_level("S1", "P1", 10)], [count("P1", 8)])
        assert len(found) == 1
        inconsistency = found[0]
        assert inconsistency.variance == Decimal("-2")
        assert inconsistency.variance_percentage == Decimal("-20.00")
        assert inconsistency.severity == S.MAJOR
        assert "Immediate recount" in inconsistency.recommended_actions

    def test_within_tolerance_is_omitted(self, make_level):
        found = detect_inventory_inconsistencies([make_level("S1", "P1", 100)], [count("P1", 96)])
        assert found == []

    def test_unknown_product_is_critical(self):
        found = detect_inventory_inconsistencies([], [count("P1", 5)])
        assert found[0].severity == S.CRITICAL
        assert found[0].variance_percentage == Decimal("100.00")
        assert found[0].theoretical_quantity == Decimal("0")

    def test_zero_counted_against_zero_is_fine(self, make_level):
        found = detect_inventory_inconsistencies([make_level("S1", "P1", 0)], [count("P1", 0)])
        assert found == []

    def test_negative_record_uses_magnitude(self, make_level):
        found = detect_inventory_inconsistencies([make_level("S1", "P1", -4)], [count("P1", 0)])
        assert found[0].variance == Decimal("4")
        assert found[0].variance_percentage == Decimal("100.00")
        assert found[0].severity == S.CRITICAL

    def test_counts_matched_per_store(self, make_level):
        levels = [make_level("S1", "P1", 10), make_level("S2", "P1", 20)]
        found = detect_inventory_inconsistencies(levels, [count("P1", 10), count("P1", 10, store_id="S2")])
        assert [(i.store_id, i.severity) for i in found] == [("S2", S.CRITICAL)]

    def test_tolerance_comes_from_rules(self, make_level):
        rules = BusinessRules(inventory_tolerance_percentage=25)
        found = detect_inventory_inconsistencies([make_level("S1", "P1", 10)], [count("P1", 8)], rules)
        assert found == []


class TestActions:

    def test_one_action_per_inconsistency(self, make_level):
        levels = [make_level("S1", "P1", 100), make_level("S1", "P2", 10), make_level("S1", "P3", 10)]
        found = detect_inventory_inconsistencies(levels, [count("P1", 92), count("P2", 8), count("P3", 30)])
        assert [i.severity for i in found] == [S.MINOR, S.MAJOR, S.CRITICAL]

        actions = generate_reconciliation_actions(found)
        assert [a.action_type for a in actions] == [
            ReconciliationActionType.ADJUSTMENT,
            ReconciliationActionType.INVESTIGATION,
            ReconciliationActionType.AUDIT,
        ]
        assert [a.required_role for a in actions] == ["manager", "director", "director"]
        assert [a.priority for a in actions] == ["low", "high", "urgent"]
        assert [a.suggested_adjustment for a in actions] == [Decimal("-8"), Decimal("-2"), Decimal("20")]

    def test_summary(self, make_level):
        levels = [make_level("S1", "P1", 10), make_level("S1", "P2", 10)]
        found = detect_inventory_inconsistencies(levels, [count("P1", 8), count("P2", 30)])
        summary = summarize_inconsistencies(found)
        assert summary["total"] == 2
        assert summary["by_severity"] == {"minor": 0, "major": 1, "critical": 1}
        assert summary["net_adjustment"] == "18"

    def test_empty_summary(self):
        assert summarize_inconsistencies([]) == {
            "total": 0,
            "by_severity": {"minor": 0, "major": 0, "critical": 0},
            "net_adjustment": "0",
        }
