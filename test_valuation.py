"""Weighted-average cost (CUMP) tests."""

from decimal import Decimal

from core.models.canonical import ReceiptLine
from valuation.cump import calculate_cump, calculate_cump_impact


class TestCalculateCump:

    def test_no_stock_takes_unit_cost(self):
        assert calculate_cump(Decimal("0"), Decimal("0"), Decimal("10"), Decimal("100")) == Decimal("100")

    def test_negative_stock_takes_unit_cost_unrounded(self):
        assert calculate_cump(Decimal("-3"), Decimal("80"), Decimal("5"), Decimal("12.345")) == Decimal("12.345")

    def test_weighted_average(self):
        assert calculate_cump(Decimal("10"), Decimal("100"), Decimal("10"), Decimal("200")) == Decimal("150.00")

    def test_rounds_half_up_to_cents(self):
        # (3 * 10 + 3 * 10.01) / 6 = 10.005
        assert calculate_cump(Decimal("3"), Decimal("10"), Decimal("3"), Decimal("10.01")) == Decimal("10.01")
        # 10 / 3 = 3.333...
        assert calculate_cump(Decimal("2"), Decimal("5"), Decimal("1"), Decimal("0")) == Decimal("3.33")

    def test_accepts_plain_numbers(self):
        assert calculate_cump(4, 25, 4, 35) == Decimal("30.00")

    def test_receipt_emptying_the_stock_takes_unit_cost(self):
        assert calculate_cump(Decimal("10"), Decimal("100"), Decimal("-10"), Decimal("50")) == Decimal("50")
        assert calculate_cump(Decimal("10"), Decimal("0"), Decimal("-10"), Decimal("0")) == Decimal("0")
        assert calculate_cump(Decimal("4"), Decimal("100"), Decimal("-6"), Decimal("50")) == Decimal("50")

    def test_result_stays_between_costs(self):
        result = calculate_cump(Decimal("7"), Decimal("13.40"), Decimal("11"), Decimal("9.15"))
        assert Decimal("9.15") <= result <= Decimal("13.40")


class TestCostImpact:

    def test_impact_per_line(self, make_receipt, make_level):
        receipt = make_receipt(lines=[(10, 200), (5, 40)])
        levels = [
            make_level("S1", "P1", 10, average_cost=100),
            make_level("S2", "P2", 50, average_cost=10),
        ]
        impacts = calculate_cump_impact(receipt, levels)

        assert [i.product_id for i in impacts] == ["P1", "P2"]
        assert impacts[0].old_average_cost == Decimal("100")
        assert impacts[0].new_average_cost == Decimal("150.00")
        # P2 has no stock record in S1
        assert impacts[1].old_average_cost == Decimal("0")
        assert impacts[1].new_average_cost == Decimal("40")

    def test_bare_lines_with_explicit_store(self, make_level):
        lines = [ReceiptLine(product_id="P1", quantity_received=10, unit_cost=200, subtotal=2000)]
        impacts = calculate_cump_impact(lines, [make_level("S2", "P1", 30, average_cost=120)], store_id="S2")
        assert impacts[0].new_average_cost == Decimal("140.00")

    def test_negative_correction_line_does_not_raise(self, make_level):
        lines = [ReceiptLine(product_id="P1", quantity_received=-10, unit_cost=50, subtotal=-500)]
        impacts = calculate_cump_impact(lines, [make_level("S1", "P1", 10, average_cost=100)], store_id="S1")
        assert impacts[0].old_average_cost == Decimal("100")
        assert impacts[0].new_average_cost == Decimal("50")

    def test_level_without_average_cost(self, make_receipt, make_level):
        receipt = make_receipt(lines=[(10, 60)])
        impacts = calculate_cump_impact(receipt, [make_level("S1", "P1", 10)])
        assert impacts[0].old_average_cost == Decimal("0")
        assert impacts[0].new_average_cost == Decimal("30.00")
