"""
Subscription Service — Lifecycle Actions and Lines
==================================================

PURPOSE:
    1. **create_subscription()** — new DRAFT subscription on a plan.
    2. **update_subscription()** — edit header fields (template, expiry,
       payment terms, salesperson, notes) while DRAFT, QUOTATION or CONFIRMED.
    3. **add_line() / remove_line()** — edit lines while DRAFT or QUOTATION.
    4. **quote / confirm / activate / close** — state-machine actions.
    5. **renew()** — copy a CONFIRMED/ACTIVE/CLOSED subscription into a new
       DRAFT with the same plan, terms and lines.

TRANSITIONS:
    Legality comes from app.services.state_machines. Each action is one
    transaction applied as a compare-and-set:

        UPDATE subscriptions SET status = :target, ...
         WHERE id = :id AND status = :expected

    If no row matches, another request moved the subscription first and
    the action fails with IllegalTransitionError against the fresh status.
    A STATUS_CHANGE audit row is written in the same transaction.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.config import settings
from app.core.database import get_session_context, sqlite_retry
from app.core.errors import BusinessRuleError, IllegalTransitionError, NotFoundError, ValidationError
from app.core.pagination import Page, paginate
from app.models.audit import AuditAction
from app.models.base import utcnow
from app.models.catalog import ProductVariant, RecurringPlan, TaxRate
from app.models.discount import Discount
from app.models.subscription import Subscription, SubscriptionLine, SubscriptionStatus
from app.services.audit_service import audit_service
from app.services.pricing import add_billing_interval, to_decimal
from app.services.state_machines import SubscriptionAction, next_subscription_status
from app.utils.numbering import generate_subscription_number

logger = logging.getLogger(__name__)

__all__ = [
    "SubscriptionService",
    "subscription_service",
    "EDITABLE_STATUSES",
    "HEADER_EDITABLE_STATUSES",
    "RENEWABLE_STATUSES",
]

EDITABLE_STATUSES = {SubscriptionStatus.DRAFT, SubscriptionStatus.QUOTATION}
RENEWABLE_STATUSES = {SubscriptionStatus.CONFIRMED, SubscriptionStatus.ACTIVE, SubscriptionStatus.CLOSED}
HEADER_EDITABLE_STATUSES = {SubscriptionStatus.DRAFT, SubscriptionStatus.QUOTATION, SubscriptionStatus.CONFIRMED}

_HEADER_FIELDS = {"quotation_template", "expiration_date", "payment_term_days", "salesperson_id", "notes"}

# Builds the column updates for a transition; may raise to veto it.
Prepare = Callable[[Session, Subscription], Dict[str, Any]]


class SubscriptionService:

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create_subscription(
        self,
        user_id: str,
        plan_id: str,
        salesperson_id: Optional[str] = None,
        payment_term_days: Optional[int] = None,
        notes: Optional[str] = None,
        quotation_template: Optional[str] = None,
        expiration_date: Optional[date] = None,
        start_date: Optional[date] = None,
    ) -> Subscription:
        if not (user_id or "").strip():
            raise ValidationError("user_id is required")
        if payment_term_days is not None and payment_term_days < 0:
            raise ValidationError("payment_term_days must not be negative")

        with get_session_context() as session:
            if session.get(RecurringPlan, plan_id) is None:
                raise NotFoundError("RecurringPlan", plan_id)

            subscription = Subscription(
                subscription_number=generate_subscription_number(),
                user_id=user_id,
                plan_id=plan_id,
                status=SubscriptionStatus.DRAFT.value,
                salesperson_id=salesperson_id,
                payment_term_days=payment_term_days,
                notes=notes,
                quotation_template=quotation_template,
                expiration_date=expiration_date,
                start_date=start_date,
            )
            session.add(subscription)
            audit_service.record(
                session, "subscription", subscription.id, AuditAction.CREATED,
                new_value={"status": subscription.status, "plan_id": plan_id, "user_id": user_id},
            )
            session.commit()
            session.refresh(subscription)

        logger.info(
            "subscription_created",
            extra={"subscription_id": subscription.id, "subscription_number": subscription.subscription_number},
        )
        return subscription

    def get_subscription(self, subscription_id: str) -> Subscription:
        with get_session_context() as session:
            return self._get(session, subscription_id)

    def list_subscriptions(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[Subscription]:
        stmt = select(Subscription)
        if user_id:
            stmt = stmt.where(Subscription.user_id == user_id)
        if status:
            stmt = stmt.where(Subscription.status == SubscriptionStatus(status).value)
        with get_session_context() as session:
            return paginate(session, stmt.order_by(Subscription.created_at.desc()), limit, offset)

    def update_subscription(self, subscription_id: str, **changes: Any) -> Subscription:
        """Edit header fields while DRAFT, QUOTATION or CONFIRMED.

        Applied as ``UPDATE ... WHERE status IN (...)`` so a concurrent
        activate or close cannot slip in between the check and the write.
        """
        changes = {k: v for k, v in changes.items() if k in _HEADER_FIELDS}
        if changes.get("payment_term_days") is not None and changes["payment_term_days"] < 0:
            raise ValidationError("payment_term_days must not be negative")

        with get_session_context() as session:
            subscription = self._get(session, subscription_id)
            if SubscriptionStatus(subscription.status) not in HEADER_EDITABLE_STATUSES:
                raise self._header_locked(subscription.status)
            if not changes:
                return subscription

            old = {k: getattr(subscription, k) for k in changes}
            result = session.connection().execute(
                update(Subscription)
                .where(
                    Subscription.id == subscription_id,
                    Subscription.status.in_([s.value for s in HEADER_EDITABLE_STATUSES]),
                )
                .values(updated_at=utcnow(), **changes)
            )
            if result.rowcount != 1:
                session.rollback()
                current = session.get(Subscription, subscription_id, populate_existing=True)
                raise self._header_locked(current.status if current else subscription.status)

            audit_service.record(
                session, "subscription", subscription_id, AuditAction.UPDATED,
                old_value=old, new_value=changes,
            )
            session.commit()
            session.refresh(subscription)

        logger.info(
            "subscription_updated",
            extra={"subscription_id": subscription_id, "fields": sorted(changes)},
        )
        return subscription

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def add_line(
        self,
        subscription_id: str,
        variant_id: str,
        quantity: int,
        unit_price: Optional[Any] = None,
        discount_id: Optional[str] = None,
        tax_rate_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SubscriptionLine:
        """Add a line; unit price defaults to the variant's current catalog price."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("quantity must be a positive integer")
        if unit_price is not None and to_decimal(unit_price) < 0:
            raise ValidationError("unit_price must not be negative")

        with get_session_context() as session:
            subscription = self._get(session, subscription_id)
            self._ensure_editable(subscription, "added to")

            variant = session.get(ProductVariant, variant_id)
            if variant is None:
                raise NotFoundError("ProductVariant", variant_id)
            if discount_id and session.get(Discount, discount_id) is None:
                raise NotFoundError("Discount", discount_id)
            if tax_rate_id and session.get(TaxRate, tax_rate_id) is None:
                raise NotFoundError("TaxRate", tax_rate_id)

            last_position = session.exec(
                select(func.max(SubscriptionLine.position)).where(
                    SubscriptionLine.subscription_id == subscription_id
                )
            ).one()

            line = SubscriptionLine(
                subscription_id=subscription_id,
                position=(last_position or 0) + 1,
                variant_id=variant_id,
                quantity=quantity,
                unit_price=to_decimal(unit_price) if unit_price is not None else variant.price,
                discount_id=discount_id,
                tax_rate_id=tax_rate_id,
                notes=notes,
            )
            session.add(line)
            subscription.updated_at = utcnow()
            session.add(subscription)
            audit_service.record(
                session, "subscription", subscription_id, AuditAction.LINE_ADDED,
                new_value={
                    "line_id": line.id,
                    "variant_id": variant_id,
                    "quantity": quantity,
                    "unit_price": line.unit_price,
                },
            )
            session.commit()

        logger.info("subscription_line_added", extra={"subscription_id": subscription_id, "line_id": line.id})
        return line

    def remove_line(self, subscription_id: str, line_id: str) -> Subscription:
        with get_session_context() as session:
            subscription = self._get(session, subscription_id)
            self._ensure_editable(subscription, "removed from")

            line = session.get(SubscriptionLine, line_id)
            if line is None or line.subscription_id != subscription_id:
                raise NotFoundError("SubscriptionLine", line_id)

            subscription.lines.remove(line)
            subscription.updated_at = utcnow()
            session.add(subscription)
            audit_service.record(
                session, "subscription", subscription_id, AuditAction.LINE_REMOVED,
                old_value={"line_id": line_id, "variant_id": line.variant_id, "quantity": line.quantity},
            )
            session.commit()
            session.refresh(subscription)
            return subscription

    # ------------------------------------------------------------------
    # State-machine actions
    # ------------------------------------------------------------------

    def quote(
        self,
        subscription_id: str,
        quotation_template: Optional[str] = None,
        expiration_date: Optional[date] = None,
    ) -> Subscription:
        """DRAFT → QUOTATION. Sets the quotation template and expiration date."""

        def prepare(session: Session, sub: Subscription) -> Dict[str, Any]:
            return {
                "quotation_template": quotation_template
                or sub.quotation_template
                or settings.default_quotation_template,
                "expiration_date": expiration_date
                or date.today() + timedelta(days=settings.quotation_validity_days),
            }

        return self._transition(subscription_id, SubscriptionAction.QUOTE, prepare)

    def confirm(self, subscription_id: str, start_date: Optional[date] = None) -> Subscription:
        """QUOTATION → CONFIRMED. Requires at least one line."""

        def prepare(session: Session, sub: Subscription) -> Dict[str, Any]:
            if not sub.lines:
                raise BusinessRuleError(
                    "Cannot confirm subscription without line items", code="SUB-SUB-002"
                )
            today = date.today()
            return {"start_date": start_date or sub.start_date or today, "order_date": today}

        return self._transition(subscription_id, SubscriptionAction.CONFIRM, prepare)

    def activate(self, subscription_id: str) -> Subscription:
        """CONFIRMED → ACTIVE. Computes next_billing_date from the plan."""

        def prepare(session: Session, sub: Subscription) -> Dict[str, Any]:
            plan = session.get(RecurringPlan, sub.plan_id)
            if plan is None:
                raise NotFoundError("RecurringPlan", sub.plan_id)
            start = sub.start_date or date.today()
            return {
                "start_date": start,
                "next_billing_date": add_billing_interval(start, plan.billing_period, plan.interval_count),
            }

        return self._transition(subscription_id, SubscriptionAction.ACTIVATE, prepare)

    def close(self, subscription_id: str, end_date: Optional[date] = None) -> Subscription:
        """ACTIVE → CLOSED."""

        def prepare(session: Session, sub: Subscription) -> Dict[str, Any]:
            return {"end_date": end_date or date.today()}

        return self._transition(subscription_id, SubscriptionAction.CLOSE, prepare)

    def renew(self, subscription_id: str) -> Subscription:
        """Start a new DRAFT subscription carrying over plan, terms and lines."""
        with get_session_context() as session:
            source = self._get(session, subscription_id)
            if SubscriptionStatus(source.status) not in RENEWABLE_STATUSES:
                raise BusinessRuleError(
                    "Subscription can only be renewed from CONFIRMED, ACTIVE, or CLOSED status",
                    code="SUB-SUB-004",
                    context={"status": source.status},
                )

            renewed = Subscription(
                subscription_number=generate_subscription_number(),
                user_id=source.user_id,
                plan_id=source.plan_id,
                status=SubscriptionStatus.DRAFT.value,
                quotation_template=source.quotation_template,
                salesperson_id=source.salesperson_id,
                payment_term_days=source.payment_term_days,
                notes=f"Renewed from {source.subscription_number}",
            )
            for line in source.lines:
                renewed.lines.append(
                    SubscriptionLine(
                        position=line.position,
                        variant_id=line.variant_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        discount_id=line.discount_id,
                        tax_rate_id=line.tax_rate_id,
                        notes=line.notes,
                    )
                )
            session.add(renewed)
            audit_service.record(
                session, "subscription", renewed.id, AuditAction.CREATED,
                new_value={"status": renewed.status, "renewed_from": source.id},
            )
            session.commit()
            session.refresh(renewed)

        logger.info(
            "subscription_renewed",
            extra={"subscription_id": renewed.id, "renewed_from": subscription_id},
        )
        return renewed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, session: Session, subscription_id: str) -> Subscription:
        subscription = session.get(Subscription, subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription", subscription_id)
        return subscription

    def _ensure_editable(self, subscription: Subscription, verb: str) -> None:
        if SubscriptionStatus(subscription.status) not in EDITABLE_STATUSES:
            raise BusinessRuleError(
                f"Lines can only be {verb} subscriptions in DRAFT or QUOTATION status",
                code="SUB-SUB-003",
                context={"status": subscription.status},
            )

    def _header_locked(self, status: str) -> BusinessRuleError:
        return BusinessRuleError(
            "Subscription can only be updated in DRAFT, QUOTATION or CONFIRMED status",
            code="SUB-SUB-005",
            context={"status": status},
        )

    def _transition(self, subscription_id: str, action: SubscriptionAction, prepare: Prepare) -> Subscription:
        return sqlite_retry(lambda: self._apply_transition(subscription_id, action, prepare))

    def _apply_transition(
        self,
        subscription_id: str,
        action: SubscriptionAction,
        prepare: Prepare,
    ) -> Subscription:
        with get_session_context() as session:
            subscription = self._get(session, subscription_id)
            expected = subscription.status
            target = next_subscription_status(expected, action)
            values = prepare(session, subscription)

            result = session.connection().execute(
                update(Subscription)
                .where(Subscription.id == subscription_id, Subscription.status == expected)
                .values(status=target.value, updated_at=utcnow(), **values)
            )
            if result.rowcount != 1:
                session.rollback()
                current = session.get(Subscription, subscription_id, populate_existing=True)
                logger.warning(
                    "subscription_transition_lost_race",
                    extra={"subscription_id": subscription_id, "action": action.value, "expected": expected},
                )
                raise IllegalTransitionError("subscription", current.status if current else expected, action.value)

            audit_service.record(
                session, "subscription", subscription_id, AuditAction.STATUS_CHANGE,
                old_value={"status": expected},
                new_value={"status": target.value, **values},
            )
            session.commit()
            session.refresh(subscription)

        logger.info(
            "subscription_transition",
            extra={
                "subscription_id": subscription_id,
                "action": action.value,
                "from_status": expected,
                "to_status": target.value,
            },
        )
        return subscription


subscription_service = SubscriptionService()
