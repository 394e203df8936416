"""
Pricing Service — Line, Invoice and Period Arithmetic
=====================================================

PURPOSE:
    Pure, deterministic money and calendar math shared by the invoice
    generator, the discount validator and the subscription actions.
    No database access, no state.

ROUNDING POLICY:
    All amounts are decimal.Decimal. A LineCalculation carries full
    precision; values are quantized to 2 places (ROUND_HALF_UP) only when
    stored or displayed (LineCalculation.rounded()). Invoice subtotal,
    discount and tax sum the unrounded line values and round each sum once,
    so per-line rounding never compounds. The invoice total is then
    subtotal - discount + tax over those rounded sums.

    Example: qty 2 × 999.00, 10% off, 18% tax
        subtotal 1998.00, discount 199.80, taxable 1798.20,
        tax 323.676 → 323.68, line total 2121.876 → 2121.88

BILLING PERIODS:
    DAILY/WEEKLY add days; MONTHLY/YEARLY add calendar months/years,
    keeping the day of month and clipping to the last valid day
    (Jan 31 + 1 month = Feb 28/29). Periods are half-open:
    [period_start, period_end).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

from dateutil.relativedelta import relativedelta

from app.models.catalog import BillingPeriod
from app.models.discount import DiscountType

__all__ = [
    "LineCalculation",
    "TotalCalculation",
    "to_decimal",
    "round_money",
    "calculate_discount_amount",
    "calculate_line_item",
    "calculate_totals",
    "add_billing_interval",
    "calculate_period_end",
    "calculate_due_date",
    "is_fully_paid",
]

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value: Optional[Number]) -> Decimal:
    """Coerce to Decimal. Floats go through str() so 0.1 stays 0.1."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    """Quantize to 2 decimal places, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineCalculation:
    """Unrounded amounts for one line."""
    line_subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal

    def rounded(self) -> "LineCalculation":
        return LineCalculation(
            line_subtotal=round_money(self.line_subtotal),
            discount_amount=round_money(self.discount_amount),
            taxable_amount=round_money(self.taxable_amount),
            tax_amount=round_money(self.tax_amount),
            line_total=round_money(self.line_total),
        )


@dataclass(frozen=True)
class TotalCalculation:
    """Invoice-level totals, each rounded once."""
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal


def calculate_discount_amount(
    base: Number,
    discount_type: Optional[str],
    discount_value: Optional[Number],
) -> Decimal:
    """Discount against *base*; never negative, never above *base*."""
    base = to_decimal(base)
    if not discount_type or discount_value is None:
        return ZERO
    value = to_decimal(discount_value)
    if value <= 0 or base <= 0:
        return ZERO

    if discount_type == DiscountType.PERCENTAGE:
        amount = base * value / HUNDRED
    elif discount_type == DiscountType.FIXED:
        amount = value
    else:
        raise ValueError(f"Unknown discount type: {discount_type!r}")
    return min(amount, base)


def calculate_line_item(
    quantity: int,
    unit_price: Number,
    discount_type: Optional[str] = None,
    discount_value: Optional[Number] = None,
    tax_rate: Optional[Number] = None,
) -> LineCalculation:
    """subtotal → discount → taxable → tax → line total, at full precision."""
    line_subtotal = to_decimal(unit_price) * int(quantity)
    discount_amount = calculate_discount_amount(line_subtotal, discount_type, discount_value)
    taxable_amount = line_subtotal - discount_amount
    tax_amount = taxable_amount * to_decimal(tax_rate) / HUNDRED if tax_rate is not None else ZERO
    return LineCalculation(
        line_subtotal=line_subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        line_total=taxable_amount + tax_amount,
    )


def calculate_totals(lines: Iterable[LineCalculation]) -> TotalCalculation:
    """Sum unrounded lines, round subtotal/discount/tax once, derive total.

    total is built from the rounded parts so that
    total == subtotal - discount_amount + tax_amount holds exactly.
    """
    subtotal = discount = tax = ZERO
    for line in lines:
        subtotal += line.line_subtotal
        discount += line.discount_amount
        tax += line.tax_amount
    subtotal = round_money(subtotal)
    discount = round_money(discount)
    tax = round_money(tax)
    return TotalCalculation(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        total=subtotal - discount + tax,
    )


def add_billing_interval(start: date, billing_period: str, interval_count: int = 1) -> date:
    """Advance *start* by interval_count × billing_period."""
    if interval_count < 1:
        raise ValueError("interval_count must be >= 1")

    period = BillingPeriod(billing_period)
    if period is BillingPeriod.DAILY:
        return start + timedelta(days=interval_count)
    if period is BillingPeriod.WEEKLY:
        return start + timedelta(weeks=interval_count)
    if period is BillingPeriod.MONTHLY:
        return start + relativedelta(months=interval_count)
    return start + relativedelta(years=interval_count)


def calculate_period_end(period_start: date, billing_period: str, interval_count: int = 1) -> date:
    """Exclusive end of the period beginning at *period_start*."""
    return add_billing_interval(period_start, billing_period, interval_count)


def calculate_due_date(issue_date: date, due_days: int) -> date:
    return issue_date + timedelta(days=due_days)


def is_fully_paid(total: Number, paid_amount: Number) -> bool:
    return round_money(paid_amount) >= round_money(total)
