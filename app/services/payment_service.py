"""
Payment Service — Recording Payments Against Invoices
=====================================================

PURPOSE:
    **record_payment()** inserts an immutable Payment, adds it to the
    invoice's paid_amount and moves the invoice CONFIRMED → PAID once
    paid_amount >= total (compared at 2 decimal places).

RULES:
    - amount <= 0 is rejected before anything is read (SUB-PAY-002).
    - only CONFIRMED invoices accept payments (SUB-PAY-001).
    - overpayment is accepted and recorded as-is; the invoice still
      becomes PAID.

CONCURRENCY:
    paid_amount is incremented in SQL (paid_amount = paid_amount + :amount)
    guarded by status = CONFIRMED, so concurrent partial payments never
    lose an update and a payment can't land on an invoice that was
    canceled or paid in the meantime.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, List, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from app.core.database import get_session_context, sqlite_retry
from app.core.errors import BusinessRuleError, NotFoundError, ValidationError
from app.core.pagination import Page, paginate
from app.models.audit import AuditAction
from app.models.base import utcnow
from app.models.invoice import Invoice, InvoiceStatus, Payment, PaymentMethod
from app.services.audit_service import audit_service
from app.services.invoice_service import invoice_service
from app.services.pricing import is_fully_paid, round_money, to_decimal
from app.services.state_machines import InvoiceAction

logger = logging.getLogger(__name__)

__all__ = ["PaymentService", "payment_service"]


def _not_payable(invoice_id: str, status: str) -> BusinessRuleError:
    return BusinessRuleError(
        f"Payments can only be recorded for CONFIRMED invoices (invoice is {status})",
        code="SUB-PAY-001",
        context={"invoice_id": invoice_id, "status": status},
    )


class PaymentService:

    def record_payment(
        self,
        invoice_id: str,
        amount: Any,
        method: str = PaymentMethod.BANK_TRANSFER.value,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        payment_date: Optional[date] = None,
    ) -> Payment:
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero", code="SUB-PAY-002")
        if round_money(amount) != amount:
            raise ValidationError("Payment amount must have at most 2 decimal places", code="SUB-PAY-002")
        amount = round_money(amount)
        try:
            method = PaymentMethod(method).value
        except ValueError:
            raise ValidationError(f"Unknown payment method: {method!r}")

        return sqlite_retry(
            lambda: self._record(invoice_id, amount, method, reference, notes, payment_date or date.today())
        )

    def _record(
        self,
        invoice_id: str,
        amount,
        method: str,
        reference: Optional[str],
        notes: Optional[str],
        payment_date: date,
    ) -> Payment:
        with get_session_context() as session:
            invoice = session.get(Invoice, invoice_id)
            if invoice is None:
                raise NotFoundError("Invoice", invoice_id)
            if invoice.status != InvoiceStatus.CONFIRMED:
                raise _not_payable(invoice_id, invoice.status)

            result = session.connection().execute(
                update(Invoice)
                .where(Invoice.id == invoice_id, Invoice.status == InvoiceStatus.CONFIRMED.value)
                .values(paid_amount=Invoice.paid_amount + amount, updated_at=utcnow())
            )
            if result.rowcount != 1:
                session.rollback()
                current = session.get(Invoice, invoice_id, populate_existing=True)
                raise _not_payable(invoice_id, current.status if current else invoice.status)

            payment = Payment(
                invoice_id=invoice_id,
                amount=amount,
                method=method,
                reference=reference,
                notes=notes,
                payment_date=payment_date,
            )
            session.add(payment)

            session.refresh(invoice)
            paid_in_full = is_fully_paid(invoice.total, invoice.paid_amount)
            audit_service.record(
                session, "invoice", invoice_id, AuditAction.PAYMENT_RECORDED,
                new_value={
                    "payment_id": payment.id,
                    "amount": amount,
                    "method": method,
                    "paid_amount": invoice.paid_amount,
                },
            )
            if paid_in_full:
                invoice_service.apply_transition(session, invoice, InvoiceAction.PAY)
            session.commit()

        logger.info(
            "payment_recorded",
            extra={
                "payment_id": payment.id,
                "invoice_id": invoice_id,
                "amount": str(amount),
                "paid_in_full": paid_in_full,
            },
        )
        return payment

    def get_payment(self, payment_id: str) -> Payment:
        with get_session_context() as session:
            payment = session.get(Payment, payment_id)
            if payment is None:
                raise NotFoundError("Payment", payment_id)
            return payment

    def list_payments_for_invoice(self, invoice_id: str) -> List[Payment]:
        with get_session_context() as session:
            if session.get(Invoice, invoice_id) is None:
                raise NotFoundError("Invoice", invoice_id)
            stmt = (
                select(Payment)
                .where(Payment.invoice_id == invoice_id)
                .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
            )
            return list(session.exec(stmt).all())

    def list_payments(self, limit: Optional[int] = None, offset: Optional[int] = None) -> Page[Payment]:
        stmt = select(Payment).order_by(Payment.payment_date.desc(), Payment.created_at.desc())
        with get_session_context() as session:
            return paginate(session, stmt, limit, offset)


payment_service = PaymentService()
