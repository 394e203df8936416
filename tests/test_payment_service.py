"""
Payment Service Tests
=====================

Partial, exact and over-payment; rejection of non-positive amounts and
of invoices that are not CONFIRMED; payment listings.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlmodel import select

from app.core.database import get_session_context
from app.core.errors import BusinessRuleError, NotFoundError, ValidationError
from app.models.audit import AuditLog
from app.models.invoice import InvoiceStatus
from app.models.responses import InvoiceResponse
from app.services.invoice_service import invoice_service
from app.services.payment_service import payment_service


@pytest.fixture
def confirmed_invoice(active_subscription):
    """CONFIRMED invoice for 2121.88."""
    invoice = invoice_service.generate_invoice(active_subscription.id, date(2026, 1, 1))
    return invoice_service.confirm_invoice(invoice.id)


class TestRecordPayment:

    def test_partial_then_final_payment(self, confirmed_invoice):
        payment_service.record_payment(confirmed_invoice.id, Decimal("1000.00"))
        invoice = invoice_service.get_invoice(confirmed_invoice.id)
        assert invoice.status == InvoiceStatus.CONFIRMED
        assert invoice.paid_amount == Decimal("1000.00")

        payment_service.record_payment(confirmed_invoice.id, Decimal("1121.88"), method="CASH")
        invoice = invoice_service.get_invoice(confirmed_invoice.id)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_amount == Decimal("2121.88")
        assert len(invoice.payments) == 2

    def test_exact_payment(self, confirmed_invoice):
        payment = payment_service.record_payment(
            confirmed_invoice.id, "2121.88", reference="TX-1", payment_date=date(2026, 1, 20)
        )
        assert payment.amount == Decimal("2121.88")
        assert payment.method == "BANK_TRANSFER"
        assert payment.payment_date == date(2026, 1, 20)
        assert invoice_service.get_invoice(confirmed_invoice.id).status == InvoiceStatus.PAID

    def test_overpayment_is_accepted(self, confirmed_invoice):
        payment_service.record_payment(confirmed_invoice.id, Decimal("2500.00"))
        invoice = invoice_service.get_invoice(confirmed_invoice.id)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_amount == Decimal("2500.00")
        assert InvoiceResponse.model_validate(invoice).balance_due == Decimal("0.00")

    @pytest.mark.parametrize("amount", ["0", "-10.00"])
    def test_non_positive_amount(self, confirmed_invoice, amount):
        with pytest.raises(ValidationError) as exc_info:
            payment_service.record_payment(confirmed_invoice.id, amount)
        assert exc_info.value.code == "SUB-PAY-002"
        assert invoice_service.get_invoice(confirmed_invoice.id).paid_amount == Decimal("0.00")

    @pytest.mark.parametrize("amount", ["10.005", "0.004"])
    def test_sub_cent_amount_rejected(self, confirmed_invoice, amount):
        """The amount is recorded as sent or not at all."""
        with pytest.raises(ValidationError) as exc_info:
            payment_service.record_payment(confirmed_invoice.id, amount)
        assert exc_info.value.code == "SUB-PAY-002"
        assert payment_service.list_payments_for_invoice(confirmed_invoice.id) == []

    def test_trailing_zeros_are_whole_cents(self, confirmed_invoice):
        payment = payment_service.record_payment(confirmed_invoice.id, "10.5000")
        assert payment.amount == Decimal("10.50")

    def test_unknown_method(self, confirmed_invoice):
        with pytest.raises(ValidationError):
            payment_service.record_payment(confirmed_invoice.id, "10", method="BITCOIN")

    def test_draft_invoice_rejected(self, active_subscription):
        draft = invoice_service.generate_invoice(active_subscription.id, date(2026, 1, 1))
        with pytest.raises(BusinessRuleError) as exc_info:
            payment_service.record_payment(draft.id, "10")
        assert exc_info.value.code == "SUB-PAY-001"

    def test_paid_invoice_rejected(self, confirmed_invoice):
        payment_service.record_payment(confirmed_invoice.id, "2121.88")
        with pytest.raises(BusinessRuleError) as exc_info:
            payment_service.record_payment(confirmed_invoice.id, "1.00")
        assert exc_info.value.code == "SUB-PAY-001"

    def test_canceled_invoice_rejected(self, confirmed_invoice):
        invoice_service.cancel_invoice(confirmed_invoice.id)
        with pytest.raises(BusinessRuleError):
            payment_service.record_payment(confirmed_invoice.id, "1.00")

    def test_unknown_invoice(self):
        with pytest.raises(NotFoundError):
            payment_service.record_payment("missing", "1.00")

    def test_payment_and_status_change_audited(self, confirmed_invoice):
        payment_service.record_payment(confirmed_invoice.id, "2121.88")
        with get_session_context() as session:
            actions = session.exec(
                select(AuditLog.action).where(AuditLog.entity_id == confirmed_invoice.id)
            ).all()
        assert "PAYMENT_RECORDED" in actions
        assert actions.count("STATUS_CHANGE") == 2  # confirm, then pay


class TestListPayments:

    def test_for_invoice_newest_first(self, confirmed_invoice):
        payment_service.record_payment(confirmed_invoice.id, "100", payment_date=date(2026, 1, 5))
        payment_service.record_payment(confirmed_invoice.id, "200", payment_date=date(2026, 1, 10))
        amounts = [p.amount for p in payment_service.list_payments_for_invoice(confirmed_invoice.id)]
        assert amounts == [Decimal("200.00"), Decimal("100.00")]

    def test_for_unknown_invoice(self):
        with pytest.raises(NotFoundError):
            payment_service.list_payments_for_invoice("missing")

    def test_all_payments_paginated(self, confirmed_invoice):
        for _ in range(3):
            payment_service.record_payment(confirmed_invoice.id, "10")
        page = payment_service.list_payments(limit=2)
        assert page.total == 3
        assert len(page.items) == 2
        assert payment_service.get_payment(page.items[0].id).invoice_id == confirmed_invoice.id
