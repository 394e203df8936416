"""
Report Service Tests
====================

Summary counts and sums, subscription metrics and revenue buckets, all
computed from live rows.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.core.errors import ValidationError
from app.services.invoice_service import invoice_service
from app.services.payment_service import payment_service
from app.services.report_service import report_service


@pytest.fixture
def billed(active_subscription):
    """One PAID invoice (2121.88) and one DRAFT invoice."""
    paid = invoice_service.generate_invoice(active_subscription.id, date(2026, 1, 1))
    invoice_service.confirm_invoice(paid.id)
    payment_service.record_payment(paid.id, "2121.88", payment_date=date.today())
    invoice_service.generate_invoice(active_subscription.id, date(2026, 2, 1))
    return active_subscription


class TestSummary:

    def test_empty(self):
        summary = report_service.get_summary()
        assert summary.active_subscriptions_count == 0
        assert summary.total_revenue == Decimal("0.00")
        assert summary.total_payments == Decimal("0.00")

    def test_counts_and_sums(self, billed):
        summary = report_service.get_summary()
        assert summary.active_subscriptions_count == 1
        assert summary.total_revenue == Decimal("2121.88")
        assert summary.total_payments == Decimal("2121.88")
        assert summary.paid_invoices_count == 1
        assert summary.draft_invoices_count == 1
        assert summary.confirmed_invoices_count == 0
        assert summary.overdue_invoices_count == 0

    def test_overdue_count(self, billed):
        draft = invoice_service.list_invoices(status="DRAFT").items[0]
        invoice_service.confirm_invoice(draft.id)
        later = draft.due_date + timedelta(days=1)
        assert report_service.get_summary(today=later).overdue_invoices_count == 1
        assert report_service.get_summary().overdue_invoices_count == 0

    def test_date_bounds(self, billed):
        tomorrow = date.today() + timedelta(days=1)
        summary = report_service.get_summary(date_from=tomorrow)
        assert summary.total_revenue == Decimal("0.00")
        assert summary.total_payments == Decimal("0.00")
        assert summary.paid_invoices_count == 0
        assert summary.active_subscriptions_count == 1


class TestSubscriptionMetrics:

    def test_every_status_present(self, billed):
        metrics = report_service.get_subscription_metrics()
        assert metrics == {"DRAFT": 0, "QUOTATION": 0, "CONFIRMED": 0, "ACTIVE": 1, "CLOSED": 0}


class TestRevenue:

    def test_daily_and_monthly_buckets(self, billed):
        today = date.today()
        window = (today - timedelta(days=1), today + timedelta(days=1))

        [day] = report_service.get_revenue_by_period(*window, group_by="day")
        assert day.period == today.strftime("%Y-%m-%d")
        assert day.revenue == Decimal("2121.88")
        assert day.invoice_count == 1

        [month] = report_service.get_revenue_by_period(*window, group_by="month")
        assert month.period == today.strftime("%Y-%m")

    def test_window_excludes(self, billed):
        past = date.today() - timedelta(days=30)
        assert report_service.get_revenue_by_period(past, past + timedelta(days=1)) == []

    def test_bad_group_by(self):
        with pytest.raises(ValidationError):
            report_service.get_revenue_by_period(date(2026, 1, 1), date(2026, 1, 31), group_by="week")

    def test_reversed_window(self):
        with pytest.raises(ValidationError):
            report_service.get_revenue_by_period(date(2026, 2, 1), date(2026, 1, 1))
