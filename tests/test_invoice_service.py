"""
Invoice Service Tests
=====================

Idempotent generation (including the lost-insert race), snapshot
immutability, the discount ledger written at generation time, invoice
status actions and the derived overdue filter.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func
from sqlmodel import select

from app.core.database import get_session_context
from app.core.errors import BusinessRuleError, IllegalTransitionError, NotFoundError
from app.models.discount import DiscountUsage
from app.models.invoice import Invoice, InvoiceStatus
from app.services.catalog_service import catalog_service
from app.services.discount_service import discount_service
from app.services.invoice_service import invoice_service, is_overdue
from app.services.subscription_service import subscription_service

PERIOD = date(2026, 1, 1)


def _count(model) -> int:
    with get_session_context() as session:
        return session.exec(select(func.count()).select_from(model)).one()


class TestGenerate:

    def test_amounts_and_dates(self, active_subscription):
        invoice = invoice_service.generate_invoice(active_subscription.id, PERIOD)

        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.invoice_number.startswith("INV-")
        assert invoice.period_start == PERIOD
        assert invoice.period_end == date(2026, 2, 1)
        assert invoice.issue_date == date.today()
        assert invoice.due_date == date.today() + timedelta(days=15)
        assert invoice.subtotal == Decimal("1998.00")
        assert invoice.discount_amount == Decimal("199.80")
        assert invoice.tax_amount == Decimal("323.68")
        assert invoice.total == Decimal("2121.88")
        assert invoice.paid_amount == Decimal("0.00")

        [line] = invoice.lines
        assert line.description == "Pro seat (AS-PRO)"
        assert line.quantity == 2
        assert line.unit_price == Decimal("999.00")
        assert line.line_total == Decimal("2121.88")

    def test_stored_total_matches_stored_parts(self, draft_subscription, product):
        cheap = catalog_service.add_variant(product.id, name="Sticker", price=Decimal("0.05"))
        cheaper = catalog_service.add_variant(product.id, name="Pin", price=Decimal("0.04"))
        ten_off = discount_service.create_discount(name="Tenth", type="PERCENTAGE", value=Decimal("10"))
        vat = catalog_service.create_tax_rate(name="VAT 10%", rate=Decimal("10"))
        subscription_service.add_line(draft_subscription.id, variant_id=cheap.id, quantity=1, discount_id=ten_off.id)
        subscription_service.add_line(draft_subscription.id, variant_id=cheaper.id, quantity=1, tax_rate_id=vat.id)

        invoice = invoice_service.generate_invoice(draft_subscription.id, PERIOD)

        assert invoice.subtotal == Decimal("0.09")
        assert invoice.discount_amount == Decimal("0.01")
        assert invoice.tax_amount == Decimal("0.00")
        assert invoice.total == invoice.subtotal + invoice.tax_amount - invoice.discount_amount

    def test_same_period_returns_same_invoice(self, active_subscription):
        first = invoice_service.generate_invoice(active_subscription.id, PERIOD)
        second = invoice_service.generate_invoice(active_subscription.id, PERIOD)

        assert second.id == first.id
        assert second.invoice_number == first.invoice_number
        assert _count(Invoice) == 1
        assert _count(DiscountUsage) == 1

    def test_next_period_is_a_new_invoice(self, active_subscription):
        first = invoice_service.generate_invoice(active_subscription.id, PERIOD)
        second = invoice_service.generate_invoice(active_subscription.id, date(2026, 2, 1))
        assert second.id != first.id
        assert _count(Invoice) == 2

    def test_lost_insert_race_returns_winner(self, active_subscription, monkeypatch):
        """A concurrent writer commits the same period between our lookup and our insert."""
        winner = invoice_service.generate_invoice(active_subscription.id, PERIOD)

        real_find = invoice_service._find_existing
        calls = []

        def miss_first_lookup(session, subscription_id, period_start):
            calls.append(period_start)
            if len(calls) == 1:
                return None
            return real_find(session, subscription_id, period_start)

        monkeypatch.setattr(invoice_service, "_find_existing", miss_first_lookup)
        result = invoice_service.generate_invoice(active_subscription.id, PERIOD)

        assert len(calls) == 2
        assert result.id == winner.id
        assert _count(Invoice) == 1
        assert _count(DiscountUsage) == 1

    def test_requires_lines(self, draft_subscription):
        with pytest.raises(BusinessRuleError) as exc_info:
            invoice_service.generate_invoice(draft_subscription.id, PERIOD)
        assert exc_info.value.code == "SUB-INV-002"
        assert _count(Invoice) == 0

    def test_unknown_subscription(self):
        with pytest.raises(NotFoundError):
            invoice_service.generate_invoice("missing", PERIOD)


class TestSnapshot:

    def test_invoice_ignores_later_subscription_edits(self, priced_subscription, variant):
        invoice = invoice_service.generate_invoice(priced_subscription.id, PERIOD)

        subscription_service.add_line(priced_subscription.id, variant_id=variant.id, quantity=5)
        subscription_service.remove_line(priced_subscription.id, priced_subscription.lines[0].id)

        reloaded = invoice_service.get_invoice(invoice.id)
        assert reloaded.total == Decimal("2121.88")
        assert len(reloaded.lines) == 1
        assert reloaded.lines[0].quantity == 2

    def test_invoice_ignores_later_catalog_changes(self, active_subscription, gst, ten_percent):
        invoice = invoice_service.generate_invoice(active_subscription.id, PERIOD)

        catalog_service.update_tax_rate(gst.id, rate=Decimal("25"))
        discount_service.update_discount(ten_percent.id, value=Decimal("50"))

        assert invoice_service.get_invoice(invoice.id).total == Decimal("2121.88")


class TestDiscountLedger:

    def test_usage_recorded_against_invoice(self, active_subscription, ten_percent):
        invoice = invoice_service.generate_invoice(active_subscription.id, PERIOD)

        with get_session_context() as session:
            [usage] = session.exec(select(DiscountUsage)).all()
        assert usage.discount_id == ten_percent.id
        assert usage.user_id == active_subscription.user_id
        assert usage.invoice_id == invoice.id
        assert discount_service.count_usages(ten_percent.id, user_id="user-1") == 1

    def test_one_usage_per_discount_even_on_several_lines(self, draft_subscription, variant, ten_percent):
        for _ in range(3):
            subscription_service.add_line(
                draft_subscription.id, variant_id=variant.id, quantity=1, discount_id=ten_percent.id
            )
        invoice_service.generate_invoice(draft_subscription.id, PERIOD)
        assert _count(DiscountUsage) == 1


class TestStatusActions:

    def test_confirm_cancel_restore(self, active_subscription):
        invoice = invoice_service.generate_invoice(active_subscription.id, PERIOD)

        assert invoice_service.confirm_invoice(invoice.id).status == InvoiceStatus.CONFIRMED
        assert invoice_service.cancel_invoice(invoice.id).status == InvoiceStatus.CANCELED
        assert invoice_service.restore_invoice(invoice.id).status == InvoiceStatus.DRAFT

    def test_draft_can_be_canceled(self, active_subscription):
        invoice = invoice_service.generate_invoice(active_subscription.id, PERIOD)
        assert invoice_service.cancel_invoice(invoice.id).status == InvoiceStatus.CANCELED

    def test_confirm_twice_is_illegal(self, active_subscription):
        invoice = invoice_service.generate_invoice(active_subscription.id, PERIOD)
        invoice_service.confirm_invoice(invoice.id)
        with pytest.raises(IllegalTransitionError) as exc_info:
            invoice_service.confirm_invoice(invoice.id)
        assert exc_info.value.code == "SUB-INV-001"
        assert exc_info.value.current_state == "CONFIRMED"

    def test_unknown_invoice(self):
        with pytest.raises(NotFoundError):
            invoice_service.confirm_invoice("missing")


class TestOverdue:

    def test_overdue_is_derived_from_due_date(self, active_subscription):
        invoice = invoice_service.generate_invoice(active_subscription.id, PERIOD)
        after_due = invoice.due_date + timedelta(days=1)

        assert is_overdue(invoice, after_due) is False  # still DRAFT

        confirmed = invoice_service.confirm_invoice(invoice.id)
        assert is_overdue(confirmed, invoice.due_date) is False
        assert is_overdue(confirmed, after_due) is True

        assert invoice_service.list_invoices(overdue=True, today=after_due).total == 1
        assert invoice_service.list_invoices(overdue=False, today=after_due).total == 0
        assert invoice_service.list_invoices(overdue=True).total == 0


class TestList:

    def test_filters(self, active_subscription):
        first = invoice_service.generate_invoice(active_subscription.id, PERIOD)
        invoice_service.generate_invoice(active_subscription.id, date(2026, 2, 1))
        invoice_service.confirm_invoice(first.id)

        assert invoice_service.list_invoices(subscription_id=active_subscription.id).total == 2
        confirmed = invoice_service.list_invoices(status="CONFIRMED")
        assert [i.id for i in confirmed.items] == [first.id]
        assert invoice_service.list_invoices(subscription_id="other").total == 0

    def test_pagination_is_clamped(self, active_subscription):
        invoice_service.generate_invoice(active_subscription.id, PERIOD)
        page = invoice_service.list_invoices(limit=1000, offset=-5)
        assert page.limit == 100
        assert page.offset == 0
        assert page.total == 1
