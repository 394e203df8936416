"""
Report Service — live rollups over subscriptions, invoices and payments.

Nothing is cached; every call queries current state. Money is summed in
Python from Decimal column values so results are exact on every backend.
Overdue is derived (CONFIRMED and due_date < today), never stored.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from app.core.database import get_session_context
from app.core.errors import ValidationError
from app.models.invoice import Invoice, InvoiceStatus, Payment
from app.models.subscription import Subscription, SubscriptionStatus
from app.services.pricing import round_money

logger = logging.getLogger(__name__)

__all__ = ["ReportSummary", "RevenueBucket", "ReportService", "report_service"]

GROUP_BY_FORMATS = {"day": "%Y-%m-%d", "month": "%Y-%m"}


@dataclass(frozen=True)
class ReportSummary:
    active_subscriptions_count: int
    total_revenue: Decimal
    total_payments: Decimal
    overdue_invoices_count: int
    draft_invoices_count: int
    confirmed_invoices_count: int
    paid_invoices_count: int


@dataclass(frozen=True)
class RevenueBucket:
    period: str
    revenue: Decimal
    invoice_count: int


def _within(column, date_from: Optional[date], date_to: Optional[date]):
    clauses = []
    if date_from:
        clauses.append(column >= date_from)
    if date_to:
        clauses.append(column <= date_to)
    return clauses


class ReportService:

    def get_summary(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ReportSummary:
        """Headline numbers. Date bounds (inclusive) apply to invoice issue
        dates and payment dates; active and overdue counts are current state."""
        today = today or date.today()
        issued = _within(Invoice.issue_date, date_from, date_to)

        with get_session_context() as session:
            active = self._count(
                session, select(func.count()).select_from(Subscription).where(
                    Subscription.status == SubscriptionStatus.ACTIVE.value
                )
            )
            revenue = session.exec(
                select(Invoice.total).where(Invoice.status == InvoiceStatus.PAID.value, *issued)
            ).all()
            payments = session.exec(
                select(Payment.amount).where(*_within(Payment.payment_date, date_from, date_to))
            ).all()
            overdue = self._count(
                session, select(func.count()).select_from(Invoice).where(
                    Invoice.status == InvoiceStatus.CONFIRMED.value, Invoice.due_date < today
                )
            )
            by_status = self._invoice_counts(session, issued)

        return ReportSummary(
            active_subscriptions_count=active,
            total_revenue=round_money(sum(revenue, Decimal("0"))),
            total_payments=round_money(sum(payments, Decimal("0"))),
            overdue_invoices_count=overdue,
            draft_invoices_count=by_status.get(InvoiceStatus.DRAFT.value, 0),
            confirmed_invoices_count=by_status.get(InvoiceStatus.CONFIRMED.value, 0),
            paid_invoices_count=by_status.get(InvoiceStatus.PAID.value, 0),
        )

    def get_subscription_metrics(self) -> Dict[str, int]:
        """Subscription count per status; every status is present."""
        metrics = {status.value: 0 for status in SubscriptionStatus}
        with get_session_context() as session:
            rows = session.exec(
                select(Subscription.status, func.count()).group_by(Subscription.status)
            ).all()
        for status, count in rows:
            metrics[status] = count
        return metrics

    def get_revenue_by_period(
        self,
        date_from: date,
        date_to: date,
        group_by: str = "day",
    ) -> List[RevenueBucket]:
        """PAID invoice totals bucketed by issue date, oldest first."""
        fmt = GROUP_BY_FORMATS.get(group_by)
        if fmt is None:
            raise ValidationError(f"group_by must be one of {sorted(GROUP_BY_FORMATS)}")
        if date_from > date_to:
            raise ValidationError("date_from must not be after date_to")

        with get_session_context() as session:
            rows = session.exec(
                select(Invoice.issue_date, Invoice.total)
                .where(Invoice.status == InvoiceStatus.PAID.value, *_within(Invoice.issue_date, date_from, date_to))
                .order_by(Invoice.issue_date.asc())
            ).all()

        buckets: "OrderedDict[str, List[Decimal]]" = OrderedDict()
        for issue_date, total in rows:
            buckets.setdefault(issue_date.strftime(fmt), []).append(total)

        return [
            RevenueBucket(period=period, revenue=round_money(sum(totals, Decimal("0"))), invoice_count=len(totals))
            for period, totals in buckets.items()
        ]

    def _count(self, session: Session, stmt) -> int:
        return session.exec(stmt).one()

    def _invoice_counts(self, session: Session, issued) -> Dict[str, int]:
        rows = session.exec(
            select(Invoice.status, func.count()).where(*issued).group_by(Invoice.status)
        ).all()
        return {status: count for status, count in rows}


report_service = ReportService()
