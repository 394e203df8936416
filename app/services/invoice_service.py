"""
Invoice Service — Idempotent Generation and Invoice Lifecycle
=============================================================

PURPOSE:
    1. **generate_invoice()** — builds the invoice for one billing period of
       a subscription. Idempotent per (subscription_id, period_start).
    2. **confirm / cancel / restore** — invoice status actions.
    3. **get_invoice() / list_invoices()** — reads, including the derived
       overdue filter.

IDEMPOTENCY:
    fetch existing → else build and insert → on IntegrityError from
    uq_invoices_subscription_period, roll back and return the row the
    concurrent writer committed. The loser's discount usages roll back
    with it, so a race never double-counts a redemption.

SNAPSHOTS:
    Invoice lines copy description, quantity, unit price and the computed
    amounts. Later edits to the subscription never change an issued
    invoice.

STATUS:
    DRAFT → CONFIRMED → PAID (payment_service), DRAFT|CONFIRMED → CANCELED,
    CANCELED → DRAFT (restore). Transitions are compare-and-set updates.
    Overdue (CONFIRMED and due_date < today) is computed, never stored.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.database import get_session_context, sqlite_retry
from app.core.errors import BusinessRuleError, IllegalTransitionError, NotFoundError
from app.core.pagination import Page, paginate
from app.models.audit import AuditAction
from app.models.base import utcnow
from app.models.catalog import ProductVariant, RecurringPlan, TaxRate
from app.models.discount import Discount
from app.models.invoice import Invoice, InvoiceLine, InvoiceStatus
from app.models.subscription import Subscription
from app.services.audit_service import audit_service
from app.services.discount_service import discount_service
from app.services.pricing import (
    calculate_due_date,
    calculate_line_item,
    calculate_period_end,
    calculate_totals,
)
from app.services.state_machines import InvoiceAction, next_invoice_status
from app.utils.numbering import generate_invoice_number

logger = logging.getLogger(__name__)

__all__ = ["InvoiceService", "invoice_service", "is_overdue"]


def is_overdue(invoice: Invoice, today: Optional[date] = None) -> bool:
    """CONFIRMED and past its due date."""
    today = today or date.today()
    return invoice.status == InvoiceStatus.CONFIRMED and invoice.due_date < today


def _describe(variant: Optional[ProductVariant], variant_id: str) -> str:
    if variant is None:
        return variant_id
    return f"{variant.name} ({variant.sku})" if variant.sku else variant.name


class InvoiceService:

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_invoice(self, subscription_id: str, period_start: date) -> Invoice:
        return sqlite_retry(lambda: self._generate(subscription_id, period_start))

    def _find_existing(self, session: Session, subscription_id: str, period_start: date) -> Optional[Invoice]:
        stmt = select(Invoice).where(
            Invoice.subscription_id == subscription_id,
            Invoice.period_start == period_start,
        )
        return session.exec(stmt).first()

    def _generate(self, subscription_id: str, period_start: date) -> Invoice:
        with get_session_context() as session:
            existing = self._find_existing(session, subscription_id, period_start)
            if existing is not None:
                logger.info(
                    "invoice_generation_idempotent_hit",
                    extra={"invoice_id": existing.id, "subscription_id": subscription_id},
                )
                return existing

            subscription = session.get(Subscription, subscription_id)
            if subscription is None:
                raise NotFoundError("Subscription", subscription_id)
            if not subscription.lines:
                raise BusinessRuleError(
                    "Cannot generate invoice for subscription without lines", code="SUB-INV-002"
                )
            plan = session.get(RecurringPlan, subscription.plan_id)
            if plan is None:
                raise NotFoundError("RecurringPlan", subscription.plan_id)

            issue_date = date.today()
            invoice = Invoice(
                invoice_number=generate_invoice_number(issue_date),
                subscription_id=subscription_id,
                status=InvoiceStatus.DRAFT.value,
                period_start=period_start,
                period_end=calculate_period_end(period_start, plan.billing_period, plan.interval_count),
                issue_date=issue_date,
                due_date=calculate_due_date(issue_date, plan.due_days),
            )

            calculations = []
            applied_discounts: List[str] = []
            for line in subscription.lines:
                discount = session.get(Discount, line.discount_id) if line.discount_id else None
                tax_rate = session.get(TaxRate, line.tax_rate_id) if line.tax_rate_id else None
                calc = calculate_line_item(
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    discount_type=discount.type if discount else None,
                    discount_value=discount.value if discount else None,
                    tax_rate=tax_rate.rate if tax_rate else None,
                )
                calculations.append(calc)

                stored = calc.rounded()
                invoice.lines.append(
                    InvoiceLine(
                        position=line.position,
                        description=_describe(session.get(ProductVariant, line.variant_id), line.variant_id),
                        variant_id=line.variant_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        line_subtotal=stored.line_subtotal,
                        discount_amount=stored.discount_amount,
                        taxable_amount=stored.taxable_amount,
                        tax_amount=stored.tax_amount,
                        line_total=stored.line_total,
                    )
                )
                if discount is not None and calc.discount_amount > 0 and discount.id not in applied_discounts:
                    applied_discounts.append(discount.id)

            totals = calculate_totals(calculations)
            invoice.subtotal = totals.subtotal
            invoice.discount_amount = totals.discount_amount
            invoice.tax_amount = totals.tax_amount
            invoice.total = totals.total

            try:
                session.add(invoice)
                session.flush()
                for discount_id in applied_discounts:
                    discount_service.apply_discount_code(
                        discount_id, subscription.user_id, invoice_id=invoice.id, session=session
                    )
                audit_service.record(
                    session, "invoice", invoice.id, AuditAction.CREATED,
                    new_value={
                        "status": invoice.status,
                        "period_start": invoice.period_start,
                        "period_end": invoice.period_end,
                        "total": invoice.total,
                    },
                )
                session.commit()
            except IntegrityError:
                session.rollback()
                winner = self._find_existing(session, subscription_id, period_start)
                if winner is None:
                    raise
                logger.info(
                    "invoice_generation_race_recovered",
                    extra={"invoice_id": winner.id, "subscription_id": subscription_id},
                )
                return winner

            session.refresh(invoice)

        logger.info(
            "invoice_generated",
            extra={
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "subscription_id": subscription_id,
                "total": str(invoice.total),
            },
        )
        return invoice

    # ------------------------------------------------------------------
    # Status actions
    # ------------------------------------------------------------------

    def confirm_invoice(self, invoice_id: str) -> Invoice:
        return self._run_action(invoice_id, InvoiceAction.CONFIRM)

    def cancel_invoice(self, invoice_id: str) -> Invoice:
        return self._run_action(invoice_id, InvoiceAction.CANCEL)

    def restore_invoice(self, invoice_id: str) -> Invoice:
        return self._run_action(invoice_id, InvoiceAction.RESTORE)

    def _run_action(self, invoice_id: str, action: InvoiceAction) -> Invoice:
        def work() -> Invoice:
            with get_session_context() as session:
                invoice = self._get(session, invoice_id)
                self.apply_transition(session, invoice, action)
                session.commit()
                session.refresh(invoice)
                return invoice

        return sqlite_retry(work)

    def apply_transition(
        self,
        session: Session,
        invoice: Invoice,
        action: InvoiceAction,
        **values: Any,
    ) -> InvoiceStatus:
        """Compare-and-set the invoice status inside the caller's transaction.

        Extra column *values* are written by the same UPDATE. The caller
        commits.
        """
        expected = invoice.status
        target = next_invoice_status(expected, action)

        result = session.connection().execute(
            update(Invoice)
            .where(Invoice.id == invoice.id, Invoice.status == expected)
            .values(status=target.value, updated_at=utcnow(), **values)
        )
        if result.rowcount != 1:
            session.rollback()
            current = session.get(Invoice, invoice.id, populate_existing=True)
            logger.warning(
                "invoice_transition_lost_race",
                extra={"invoice_id": invoice.id, "action": action.value, "expected": expected},
            )
            raise IllegalTransitionError(
                "invoice", current.status if current else expected, action.value, code="SUB-INV-001"
            )

        audit_service.record(
            session, "invoice", invoice.id, AuditAction.STATUS_CHANGE,
            old_value={"status": expected},
            new_value={"status": target.value},
        )
        logger.info(
            "invoice_transition",
            extra={
                "invoice_id": invoice.id,
                "action": action.value,
                "from_status": expected,
                "to_status": target.value,
            },
        )
        return target

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_invoice(self, invoice_id: str) -> Invoice:
        with get_session_context() as session:
            return self._get(session, invoice_id)

    def list_invoices(
        self,
        subscription_id: Optional[str] = None,
        status: Optional[str] = None,
        overdue: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        today: Optional[date] = None,
    ) -> Page[Invoice]:
        today = today or date.today()
        stmt = select(Invoice)
        if subscription_id:
            stmt = stmt.where(Invoice.subscription_id == subscription_id)
        if status:
            stmt = stmt.where(Invoice.status == InvoiceStatus(status).value)
        if overdue is True:
            stmt = stmt.where(Invoice.status == InvoiceStatus.CONFIRMED.value, Invoice.due_date < today)
        elif overdue is False:
            stmt = stmt.where(
                (Invoice.status != InvoiceStatus.CONFIRMED.value) | (Invoice.due_date >= today)
            )
        with get_session_context() as session:
            return paginate(session, stmt.order_by(Invoice.created_at.desc()), limit, offset)

    def _get(self, session: Session, invoice_id: str) -> Invoice:
        invoice = session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice


invoice_service = InvoiceService()
