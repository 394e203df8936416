"""
Pricing Tests
=============

Line and invoice arithmetic, the rounding policy, and billing-period
calendar math. Pure functions, no database.
"""

from datetime import date
from decimal import Decimal

import pytest

from app.services.pricing import (
    add_billing_interval,
    calculate_discount_amount,
    calculate_due_date,
    calculate_line_item,
    calculate_period_end,
    calculate_totals,
    is_fully_paid,
    round_money,
    to_decimal,
)


class TestLineItem:

    def test_percentage_discount_and_tax(self):
        """2 × 999.00, 10% off, 18% tax → 2121.88."""
        line = calculate_line_item(2, Decimal("999.00"), "PERCENTAGE", Decimal("10"), Decimal("18")).rounded()
        assert line.line_subtotal == Decimal("1998.00")
        assert line.discount_amount == Decimal("199.80")
        assert line.taxable_amount == Decimal("1798.20")
        assert line.tax_amount == Decimal("323.68")
        assert line.line_total == Decimal("2121.88")

    def test_unrounded_values_keep_full_precision(self):
        line = calculate_line_item(2, Decimal("999.00"), "PERCENTAGE", Decimal("10"), Decimal("18"))
        assert line.tax_amount == Decimal("323.676")
        assert line.line_total == Decimal("2121.876")

    def test_no_discount_no_tax(self):
        line = calculate_line_item(3, "10.50")
        assert line.line_subtotal == Decimal("31.50")
        assert line.discount_amount == 0
        assert line.tax_amount == 0
        assert line.line_total == Decimal("31.50")

    def test_fixed_discount_is_capped_at_subtotal(self):
        line = calculate_line_item(1, "50.00", "FIXED", "80.00", "18")
        assert line.discount_amount == Decimal("50.00")
        assert line.taxable_amount == 0
        assert line.line_total == 0

    def test_fixed_discount(self):
        line = calculate_line_item(2, "100.00", "FIXED", "25.00").rounded()
        assert line.discount_amount == Decimal("25.00")
        assert line.line_total == Decimal("175.00")


class TestDiscountAmount:

    def test_percentage(self):
        assert calculate_discount_amount("10000.01", "PERCENTAGE", "20") == Decimal("2000.002")

    def test_missing_type_or_value_is_zero(self):
        assert calculate_discount_amount("100", None, "10") == 0
        assert calculate_discount_amount("100", "PERCENTAGE", None) == 0

    def test_never_negative(self):
        assert calculate_discount_amount("100", "FIXED", "-5") == 0
        assert calculate_discount_amount("0", "PERCENTAGE", "50") == 0

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError, match="Unknown discount type"):
            calculate_discount_amount("100", "BOGUS", "5")


class TestTotals:

    def test_totals_round_once_over_unrounded_lines(self):
        """Three lines of 0.335: per-line rounding would give 1.02, the invoice says 1.01."""
        lines = [calculate_line_item(1, "0.335") for _ in range(3)]
        assert sum(line.rounded().line_total for line in lines) == Decimal("1.02")
        assert calculate_totals(lines).total == Decimal("1.01")

    def test_totals_add_up(self):
        lines = [
            calculate_line_item(2, "999.00", "PERCENTAGE", "10", "18"),
            calculate_line_item(1, "100.00", None, None, "5"),
        ]
        totals = calculate_totals(lines)
        assert totals.subtotal == Decimal("2098.00")
        assert totals.discount_amount == Decimal("199.80")
        assert totals.tax_amount == Decimal("328.68")
        assert totals.total == Decimal("2226.88")

    def test_total_is_built_from_rounded_parts(self):
        """Discount 0.005 rounds up and tax 0.004 rounds down; total follows the stored parts."""
        lines = [
            calculate_line_item(1, "0.05", "PERCENTAGE", "10"),
            calculate_line_item(1, "0.04", None, None, "10"),
        ]
        totals = calculate_totals(lines)
        assert totals.subtotal == Decimal("0.09")
        assert totals.discount_amount == Decimal("0.01")
        assert totals.tax_amount == Decimal("0.00")
        assert totals.total == Decimal("0.08")
        assert totals.total == totals.subtotal - totals.discount_amount + totals.tax_amount

    def test_empty(self):
        totals = calculate_totals([])
        assert totals.total == Decimal("0.00")


class TestRounding:

    @pytest.mark.parametrize("raw,expected", [
        ("2.675", "2.68"),
        ("2.665", "2.67"),
        ("2.664", "2.66"),
        ("-1.005", "-1.01"),
    ])
    def test_half_up(self, raw, expected):
        assert round_money(raw) == Decimal(expected)

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(None) == 0

    def test_fully_paid_compares_at_two_places(self):
        assert is_fully_paid("100.00", "100") is True
        assert is_fully_paid("100.00", "99.99") is False
        assert is_fully_paid("100.00", "150.00") is True


class TestBillingCalendar:

    def test_month_end_clips_to_last_day(self):
        assert add_billing_interval(date(2026, 1, 31), "MONTHLY") == date(2026, 2, 28)
        assert add_billing_interval(date(2024, 1, 31), "MONTHLY") == date(2024, 2, 29)

    def test_month_step_keeps_day_of_month(self):
        assert add_billing_interval(date(2026, 1, 15), "MONTHLY", 3) == date(2026, 4, 15)

    def test_leap_day_yearly(self):
        assert add_billing_interval(date(2024, 2, 29), "YEARLY") == date(2025, 2, 28)

    def test_daily_and_weekly(self):
        assert add_billing_interval(date(2026, 12, 31), "DAILY") == date(2027, 1, 1)
        assert add_billing_interval(date(2026, 1, 1), "WEEKLY", 2) == date(2026, 1, 15)

    def test_interval_count_must_be_positive(self):
        with pytest.raises(ValueError):
            add_billing_interval(date(2026, 1, 1), "MONTHLY", 0)

    def test_unknown_period_raises(self):
        with pytest.raises(ValueError):
            add_billing_interval(date(2026, 1, 1), "FORTNIGHTLY")

    def test_period_end_is_exclusive_next_start(self):
        start = date(2026, 3, 1)
        end = calculate_period_end(start, "MONTHLY")
        assert end == date(2026, 4, 1)
        assert calculate_period_end(end, "MONTHLY") == date(2026, 5, 1)

    def test_due_date(self):
        assert calculate_due_date(date(2026, 1, 15), 30) == date(2026, 2, 14)
        assert calculate_due_date(date(2026, 1, 15), 0) == date(2026, 1, 15)
