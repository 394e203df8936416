"""
Discount Service — Codes, Validation and the Usage Ledger
=========================================================

PURPOSE:
    1. **create / update / deactivate / get / list** discounts.
    2. **validate_discount_code()** — checks a code against a cart and the
       usage ledger. Pure read: never writes a DiscountUsage row. An invalid
       code is a result (valid=False + message), not an exception.
    3. **apply_discount_code()** — appends one DiscountUsage row. Called
       only once a discount has actually been consumed (invoice generation
       or an explicit apply).

VALIDATION ORDER (first failure wins):
    exists → active → within [start_date, end_date] → global cap →
    per-user cap → minimum purchase → product restriction

USAGE CAPS:
    Counted from discount_usages, never stored as a counter. The check is
    read-then-decide, so concurrent bursts may exceed a cap by a small
    margin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.database import get_session_context
from app.core.errors import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from app.core.pagination import Page, paginate
from app.models.audit import AuditAction
from app.models.catalog import ProductVariant
from app.models.discount import Discount, DiscountType, DiscountUsage
from app.services.audit_service import audit_service
from app.services.pricing import calculate_discount_amount, round_money, to_decimal

logger = logging.getLogger(__name__)

__all__ = [
    "CartItem",
    "DiscountValidationResult",
    "DiscountService",
    "discount_service",
]

_MUTABLE_FIELDS = {
    "name", "code", "type", "value", "description", "start_date", "end_date",
    "max_uses", "max_uses_per_user", "min_purchase_amount", "applicable_product_ids",
}
_REQUIRED_FIELDS = ("name", "type", "value")


@dataclass(frozen=True)
class CartItem:
    """One cart row. product_id wins over variant_id for product restrictions."""
    quantity: int
    unit_price: Decimal
    variant_id: Optional[str] = None
    product_id: Optional[str] = None


@dataclass
class DiscountValidationResult:
    valid: bool
    discount: Optional[Discount] = None
    discount_amount: Optional[Decimal] = None
    message: Optional[str] = None


def _invalid(message: str) -> DiscountValidationResult:
    return DiscountValidationResult(valid=False, message=message)


def _check_value(discount_type: str, value: Any) -> Decimal:
    try:
        discount_type = DiscountType(discount_type)
    except ValueError:
        raise ValidationError(f"Unknown discount type: {discount_type!r}")
    value = to_decimal(value)
    if discount_type is DiscountType.PERCENTAGE and not (0 < value <= 100):
        raise ValidationError("Percentage discount value must be greater than 0 and at most 100")
    if discount_type is DiscountType.FIXED and value <= 0:
        raise ValidationError("Fixed discount value must be greater than 0")
    return value


def _check_window(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and start_date > end_date:
        raise BusinessRuleError("Start date must be before end date", code="SUB-DSC-001")


class DiscountService:
    """Discount CRUD plus the read-only validator and the usage ledger."""

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_discount(
        self,
        name: str,
        type: str,
        value: Any,
        code: Optional[str] = None,
        description: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        max_uses: Optional[int] = None,
        max_uses_per_user: Optional[int] = None,
        min_purchase_amount: Optional[Any] = None,
        applicable_product_ids: Optional[List[str]] = None,
    ) -> Discount:
        if not (name or "").strip():
            raise ValidationError("name is required")
        value = _check_value(type, value)
        _check_window(start_date, end_date)

        discount = Discount(
            name=name,
            code=code or None,
            type=DiscountType(type).value,
            value=value,
            description=description,
            start_date=start_date,
            end_date=end_date,
            max_uses=max_uses,
            max_uses_per_user=max_uses_per_user,
            min_purchase_amount=to_decimal(min_purchase_amount) if min_purchase_amount is not None else None,
            applicable_product_ids=list(applicable_product_ids or []),
        )

        with get_session_context() as session:
            if discount.code:
                self._ensure_code_free(session, discount.code)
            session.add(discount)
            audit_service.record(
                session, "discount", discount.id, AuditAction.CREATED,
                new_value={"name": name, "code": discount.code, "type": discount.type, "value": value},
            )
            self._commit_unique(session, discount.code)

        logger.info("discount_created", extra={"discount_id": discount.id, "code": discount.code})
        return discount

    def update_discount(self, discount_id: str, **changes: Any) -> Discount:
        changes = {k: v for k, v in changes.items() if k in _MUTABLE_FIELDS}
        for key in _REQUIRED_FIELDS:
            if key in changes and changes[key] is None:
                raise ValidationError(f"{key} cannot be null")
        if "applicable_product_ids" in changes and changes["applicable_product_ids"] is None:
            changes["applicable_product_ids"] = []

        with get_session_context() as session:
            discount = self._get(session, discount_id)

            new_type = changes.get("type", discount.type)
            if "type" in changes or "value" in changes:
                changes["value"] = _check_value(new_type, changes.get("value", discount.value))
                changes["type"] = DiscountType(new_type).value
            _check_window(
                changes.get("start_date", discount.start_date),
                changes.get("end_date", discount.end_date),
            )
            if "code" in changes:
                changes["code"] = changes["code"] or None
            if changes.get("code"):
                self._ensure_code_free(session, changes["code"], exclude_id=discount_id)
            if "min_purchase_amount" in changes and changes["min_purchase_amount"] is not None:
                changes["min_purchase_amount"] = to_decimal(changes["min_purchase_amount"])

            old = {k: getattr(discount, k) for k in changes}
            for key, value in changes.items():
                setattr(discount, key, value)
            session.add(discount)
            audit_service.record(
                session, "discount", discount.id, AuditAction.UPDATED, old_value=old, new_value=changes
            )
            self._commit_unique(session, changes.get("code"))
            return discount

    def deactivate_discount(self, discount_id: str) -> Discount:
        with get_session_context() as session:
            discount = self._get(session, discount_id)
            discount.is_active = False
            session.add(discount)
            audit_service.record(
                session, "discount", discount.id, AuditAction.UPDATED,
                old_value={"is_active": True}, new_value={"is_active": False},
            )
            session.commit()
            return discount

    def get_discount(self, discount_id: str) -> Discount:
        with get_session_context() as session:
            return self._get(session, discount_id)

    def get_discount_by_code(self, code: str) -> Discount:
        with get_session_context() as session:
            discount = session.exec(select(Discount).where(Discount.code == code)).first()
            if discount is None:
                raise NotFoundError("Discount", code)
            return discount

    def list_discounts(
        self,
        is_active: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[Discount]:
        stmt = select(Discount)
        if is_active is not None:
            stmt = stmt.where(Discount.is_active == is_active)
        with get_session_context() as session:
            return paginate(session, stmt.order_by(Discount.name.asc()), limit, offset)

    # ------------------------------------------------------------------
    # Validation (read-only)
    # ------------------------------------------------------------------

    def validate_discount_code(
        self,
        code: str,
        cart_items: Sequence[CartItem],
        user_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> DiscountValidationResult:
        today = today or date.today()

        with get_session_context() as session:
            discount = session.exec(select(Discount).where(Discount.code == code)).first()
            if discount is None:
                return _invalid("Invalid discount code")

            if not discount.is_active:
                return _invalid("This discount code is no longer active")

            if discount.start_date and today < discount.start_date:
                return _invalid("This discount code is not yet valid")
            if discount.end_date and today > discount.end_date:
                return _invalid("This discount code has expired")

            if discount.max_uses is not None:
                if self._count_usages(session, discount.id) >= discount.max_uses:
                    return _invalid("This discount code has reached its maximum usage limit")

            if user_id and discount.max_uses_per_user is not None:
                if self._count_usages(session, discount.id, user_id) >= discount.max_uses_per_user:
                    return _invalid("You have reached the maximum usage limit for this discount code")

            cart_total = sum(
                (to_decimal(item.unit_price) * int(item.quantity) for item in cart_items),
                Decimal("0"),
            )

            if discount.min_purchase_amount is not None and cart_total < discount.min_purchase_amount:
                minimum = round_money(discount.min_purchase_amount)
                return _invalid(f"Minimum purchase amount of {minimum} required for this discount code")

            if discount.applicable_product_ids:
                product_ids = self._cart_product_ids(session, cart_items)
                if not product_ids.intersection(discount.applicable_product_ids):
                    return _invalid("This discount code is not applicable to items in your cart")

        amount = round_money(calculate_discount_amount(cart_total, discount.type, discount.value))
        return DiscountValidationResult(valid=True, discount=discount, discount_amount=amount)

    # ------------------------------------------------------------------
    # Usage ledger
    # ------------------------------------------------------------------

    def apply_discount_code(
        self,
        discount_id: str,
        user_id: str,
        invoice_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> DiscountUsage:
        """Append one usage row.

        With *session* the row joins the caller's transaction and is not
        committed here (invoice generation uses this).
        """
        if session is not None:
            return self._append_usage(session, discount_id, user_id, invoice_id)

        with get_session_context() as own_session:
            usage = self._append_usage(own_session, discount_id, user_id, invoice_id)
            own_session.commit()
            return usage

    def count_usages(self, discount_id: str, user_id: Optional[str] = None) -> int:
        with get_session_context() as session:
            return self._count_usages(session, discount_id, user_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, session: Session, discount_id: str) -> Discount:
        discount = session.get(Discount, discount_id)
        if discount is None:
            raise NotFoundError("Discount", discount_id)
        return discount

    def _ensure_code_free(self, session: Session, code: str, exclude_id: Optional[str] = None) -> None:
        stmt = select(Discount.id).where(Discount.code == code)
        if exclude_id:
            stmt = stmt.where(Discount.id != exclude_id)
        if session.exec(stmt).first() is not None:
            raise ConflictError("Discount code already exists", code="SUB-DSC-002")

    def _commit_unique(self, session: Session, code: Optional[str]) -> None:
        """Commit; an IntegrityError is a duplicate code only when a code was written."""
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            if not code:
                raise
            raise ConflictError("Discount code already exists", code="SUB-DSC-002", context={"code": code})

    def _count_usages(self, session: Session, discount_id: str, user_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(DiscountUsage).where(DiscountUsage.discount_id == discount_id)
        if user_id:
            stmt = stmt.where(DiscountUsage.user_id == user_id)
        return session.exec(stmt).one()

    def _cart_product_ids(self, session: Session, cart_items: Sequence[CartItem]) -> set:
        product_ids = {item.product_id for item in cart_items if item.product_id}
        variant_ids = [item.variant_id for item in cart_items if not item.product_id and item.variant_id]
        if variant_ids:
            rows = session.exec(
                select(ProductVariant.product_id).where(ProductVariant.id.in_(variant_ids))
            ).all()
            product_ids.update(rows)
        return product_ids

    def _append_usage(
        self,
        session: Session,
        discount_id: str,
        user_id: str,
        invoice_id: Optional[str],
    ) -> DiscountUsage:
        self._get(session, discount_id)
        usage = DiscountUsage(discount_id=discount_id, user_id=user_id, invoice_id=invoice_id)
        session.add(usage)
        audit_service.record(
            session, "discount", discount_id, AuditAction.DISCOUNT_APPLIED,
            new_value={"user_id": user_id, "invoice_id": invoice_id},
        )
        logger.info(
            "discount_applied",
            extra={"discount_id": discount_id, "user_id": user_id, "invoice_id": invoice_id},
        )
        return usage


discount_service = DiscountService()
