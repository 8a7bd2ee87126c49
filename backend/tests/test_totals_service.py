import math
import unittest
from decimal import Decimal

from firelynx.services.totals_service import (
    money_str,
    recalculate_cost_breakdown,
    recalculate_line_items,
    safe_decimal,
)


class SafeDecimalTests(unittest.TestCase):
    def test_numbers_and_numeric_strings(self):
        self.assertEqual(safe_decimal(3), Decimal("3"))
        self.assertEqual(safe_decimal(0.1), Decimal("0.1"))
        self.assertEqual(safe_decimal(" 2,500.50 "), Decimal("2500.50"))

    def test_garbage_becomes_zero(self):
        for value in (None, "", "abc", True, False, float("nan"), float("inf"), "NaN", "-Infinity", [], {}):
            with self.subTest(value=value):
                self.assertEqual(safe_decimal(value), Decimal("0"))

    def test_money_str_rounds_half_up(self):
        self.assertEqual(money_str("2.345"), "2.35")
        self.assertEqual(money_str("2.344"), "2.34")
        self.assertEqual(money_str(None), "0.00")


class LineItemTotalsTests(unittest.TestCase):
    def test_invoice_happy_path_totals(self):
        totals = recalculate_line_items([
            {"description": "Design fee", "quantity": 1, "rate": 2500, "tax_percent": 8.25},
            {"description": "Site visits", "quantity": 8, "rate": 150, "tax_percent": 8.25},
        ])
        self.assertEqual(totals.as_strings(), {"subtotal": "3700.00", "tax_total": "305.25", "total": "4005.25"})
        self.assertEqual([item["amount"] for item in totals.items], ["2500.00", "1200.00"])

    def test_client_aggregates_are_ignored(self):
        totals = recalculate_line_items([
            {"description": "Joinery", "quantity": 2, "rate": 100, "tax_percent": 5, "amount": "99999"},
        ])
        self.assertEqual(totals.items[0]["amount"], "200.00")
        self.assertEqual(totals.as_strings()["total"], "210.00")

    def test_camel_case_tax_percent_accepted(self):
        totals = recalculate_line_items([{"quantity": 1, "rate": 100, "taxPercent": 10}])
        self.assertEqual(totals.as_strings()["tax_total"], "10.00")
        self.assertEqual(totals.items[0]["tax_percent"], 10)

    def test_bad_line_does_not_poison_totals(self):
        totals = recalculate_line_items([
            {"description": "Broken", "quantity": "abc", "rate": float("nan"), "tax_percent": None},
            {"description": "Missing fields"},
            {"description": "Good", "quantity": 2, "rate": "50", "tax_percent": "10"},
            "not a line",
        ])
        self.assertEqual(len(totals.items), 3)
        self.assertEqual(totals.items[0]["amount"], "0.00")
        self.assertEqual(totals.items[1]["amount"], "0.00")
        strings = totals.as_strings()
        self.assertEqual(strings, {"subtotal": "100.00", "tax_total": "10.00", "total": "110.00"})
        for value in strings.values():
            self.assertFalse(math.isnan(float(value)))

    def test_recalculation_is_idempotent(self):
        lines = [
            {"description": "Tiles", "quantity": 3.5, "rate": 19.99, "tax_percent": 5},
            {"description": "Grout", "quantity": 7, "rate": 3.333, "tax_percent": 5},
        ]
        first = recalculate_line_items(lines)
        second = recalculate_line_items(first.items)
        self.assertEqual(first.as_strings(), second.as_strings())
        self.assertEqual(first.total, first.subtotal + first.tax_total)

    def test_total_equals_subtotal_plus_tax_to_the_cent(self):
        totals = recalculate_line_items([
            {"quantity": 1, "rate": "0.05", "tax_percent": 50},
            {"quantity": 1, "rate": "0.05", "tax_percent": 50},
        ])
        strings = totals.as_strings()
        self.assertEqual(
            Decimal(strings["total"]),
            Decimal(strings["subtotal"]) + Decimal(strings["tax_total"]),
        )

    def test_oversized_inputs_coerce_to_zero(self):
        totals = recalculate_line_items([
            {"description": "Typo", "quantity": 1, "rate": 1e30, "tax_percent": 5},
            {"description": "Real", "quantity": 2, "rate": 40, "tax_percent": "1e20"},
        ])
        self.assertEqual(totals.items[0]["rate"], 0)
        self.assertEqual(totals.items[0]["amount"], "0.00")
        self.assertEqual(totals.as_strings(), {"subtotal": "80.00", "tax_total": "0.00", "total": "80.00"})

    def test_largest_accepted_inputs_keep_every_digit(self):
        totals = recalculate_line_items([{"quantity": 10**15, "rate": "1e15", "tax_percent": 0}])
        self.assertEqual(totals.as_strings()["subtotal"], "1" + "0" * 30 + ".00")

    def test_precise_inputs_are_stored_exactly(self):
        totals = recalculate_line_items([
            {"quantity": "0.12345678901234567891", "rate": 1000000, "tax_percent": 0},
        ])
        self.assertEqual(totals.items[0]["quantity"], "0.12345678901234567891")
        self.assertEqual(totals.items[0]["amount"], "123456.79")
        self.assertEqual(recalculate_line_items(totals.items).as_strings(), totals.as_strings())

    def test_non_list_input_yields_zero_totals(self):
        totals = recalculate_line_items("nope")
        self.assertEqual(totals.items, [])
        self.assertEqual(totals.as_strings()["total"], "0.00")


class CostBreakdownTests(unittest.TestCase):
    def test_category_totals_and_price_impact(self):
        breakdown = recalculate_cost_breakdown(
            material_costs=[{"description": "Oak panels", "quantity": 10, "unit_rate": 1575, "total": 1}],
            labor_costs=[{"description": "Carpentry", "hours": 28, "hourlyRate": 150}],
            additional_costs=[{"category": "Transport", "description": "Crane hire", "amount": "1050"}],
        )
        self.assertEqual(breakdown.material_costs[0]["total"], "15750.00")
        self.assertEqual(breakdown.labor_costs[0]["total"], "4200.00")
        self.assertEqual(breakdown.additional_costs[0]["amount"], "1050.00")
        self.assertEqual(breakdown.price_impact, Decimal("21000.00"))
        self.assertTrue(breakdown.has_lines)

    def test_oversized_rate_coerces_to_zero(self):
        breakdown = recalculate_cost_breakdown(
            material_costs=[{"description": "Typo", "quantity": 1, "unit_rate": "1e40"}],
            labor_costs=[{"description": "Fitter", "hours": 2, "hourly_rate": 90}],
        )
        self.assertEqual(breakdown.material_costs[0]["total"], "0.00")
        self.assertEqual(breakdown.price_impact, Decimal("180.00"))

    def test_empty_breakdown(self):
        breakdown = recalculate_cost_breakdown(None, "bad", [])
        self.assertFalse(breakdown.has_lines)
        self.assertEqual(breakdown.price_impact, Decimal("0"))


if __name__ == "__main__":
    unittest.main()
