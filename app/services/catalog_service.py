"""
Catalog Service — Plans, Tax Rates, Products and Variants
=========================================================

PURPOSE:
    CRUD for the reference data subscriptions are priced against.
    Deactivation is a soft flag; rows referenced by subscription lines or
    invoices are never deleted.

VALIDATION:
    - plan: interval_count >= 1, due_days >= 0, billing_period in
      DAILY|WEEKLY|MONTHLY|YEARLY
    - tax rate: 0 <= rate <= 100
    - variant: price >= 0, sku unique (SUB-DB-001)
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.config import settings
from app.core.database import get_session_context
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.pagination import Page, paginate
from app.models.audit import AuditAction
from app.models.catalog import BillingPeriod, Product, ProductVariant, RecurringPlan, TaxRate
from app.services.audit_service import audit_service
from app.services.pricing import to_decimal

logger = logging.getLogger(__name__)

__all__ = ["CatalogService", "catalog_service"]

_PLAN_FIELDS = {"name", "billing_period", "interval_count", "due_days", "description", "is_active"}
_TAX_FIELDS = {"name", "rate", "description", "is_active"}


def _validate_plan_values(values: Dict[str, Any]) -> None:
    if "billing_period" in values:
        try:
            values["billing_period"] = BillingPeriod(values["billing_period"]).value
        except ValueError:
            raise ValidationError(f"Unknown billing period: {values['billing_period']!r}")
    if "interval_count" in values and int(values["interval_count"]) < 1:
        raise ValidationError("interval_count must be at least 1")
    if "due_days" in values and int(values["due_days"]) < 0:
        raise ValidationError("due_days must not be negative")
    if "name" in values and not (values["name"] or "").strip():
        raise ValidationError("name is required")


def _validate_rate(rate: Any) -> Decimal:
    rate = to_decimal(rate)
    if rate < 0 or rate > 100:
        raise ValidationError("Tax rate must be between 0 and 100")
    return rate


class CatalogService:

    # ------------------------------------------------------------------
    # Recurring plans
    # ------------------------------------------------------------------

    def create_plan(
        self,
        name: str,
        billing_period: str = BillingPeriod.MONTHLY.value,
        interval_count: int = 1,
        due_days: Optional[int] = None,
        description: Optional[str] = None,
    ) -> RecurringPlan:
        values = {
            "name": name,
            "billing_period": billing_period,
            "interval_count": interval_count,
            "due_days": settings.billing_default_due_days if due_days is None else due_days,
        }
        _validate_plan_values(values)
        plan = RecurringPlan(description=description, **values)

        with get_session_context() as session:
            session.add(plan)
            audit_service.record(session, "plan", plan.id, AuditAction.CREATED, new_value=values)
            session.commit()

        logger.info("plan_created", extra={"plan_id": plan.id, "billing_period": plan.billing_period})
        return plan

    def get_plan(self, plan_id: str) -> RecurringPlan:
        with get_session_context() as session:
            return self._get_plan(session, plan_id)

    def _get_plan(self, session: Session, plan_id: str) -> RecurringPlan:
        plan = session.get(RecurringPlan, plan_id)
        if plan is None:
            raise NotFoundError("RecurringPlan", plan_id)
        return plan

    def list_plans(
        self,
        is_active: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[RecurringPlan]:
        stmt = select(RecurringPlan)
        if is_active is not None:
            stmt = stmt.where(RecurringPlan.is_active == is_active)
        with get_session_context() as session:
            return paginate(session, stmt.order_by(RecurringPlan.created_at.desc()), limit, offset)

    def update_plan(self, plan_id: str, **changes: Any) -> RecurringPlan:
        changes = {k: v for k, v in changes.items() if k in _PLAN_FIELDS and v is not None}
        _validate_plan_values(changes)
        with get_session_context() as session:
            plan = self._get_plan(session, plan_id)
            old = {k: getattr(plan, k) for k in changes}
            for key, value in changes.items():
                setattr(plan, key, value)
            session.add(plan)
            audit_service.record(session, "plan", plan.id, AuditAction.UPDATED, old_value=old, new_value=changes)
            session.commit()
            return plan

    def deactivate_plan(self, plan_id: str) -> RecurringPlan:
        return self.update_plan(plan_id, is_active=False)

    # ------------------------------------------------------------------
    # Tax rates
    # ------------------------------------------------------------------

    def create_tax_rate(self, name: str, rate: Any, description: Optional[str] = None) -> TaxRate:
        if not (name or "").strip():
            raise ValidationError("name is required")
        tax_rate = TaxRate(name=name, rate=_validate_rate(rate), description=description)

        with get_session_context() as session:
            session.add(tax_rate)
            audit_service.record(
                session, "tax_rate", tax_rate.id, AuditAction.CREATED,
                new_value={"name": name, "rate": tax_rate.rate},
            )
            session.commit()
        return tax_rate

    def get_tax_rate(self, tax_rate_id: str) -> TaxRate:
        with get_session_context() as session:
            tax_rate = session.get(TaxRate, tax_rate_id)
            if tax_rate is None:
                raise NotFoundError("TaxRate", tax_rate_id)
            return tax_rate

    def list_tax_rates(
        self,
        is_active: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[TaxRate]:
        stmt = select(TaxRate)
        if is_active is not None:
            stmt = stmt.where(TaxRate.is_active == is_active)
        with get_session_context() as session:
            return paginate(session, stmt.order_by(TaxRate.name.asc()), limit, offset)

    def update_tax_rate(self, tax_rate_id: str, **changes: Any) -> TaxRate:
        changes = {k: v for k, v in changes.items() if k in _TAX_FIELDS and v is not None}
        if "rate" in changes:
            changes["rate"] = _validate_rate(changes["rate"])
        with get_session_context() as session:
            tax_rate = session.get(TaxRate, tax_rate_id)
            if tax_rate is None:
                raise NotFoundError("TaxRate", tax_rate_id)
            old = {k: getattr(tax_rate, k) for k in changes}
            for key, value in changes.items():
                setattr(tax_rate, key, value)
            session.add(tax_rate)
            audit_service.record(
                session, "tax_rate", tax_rate.id, AuditAction.UPDATED, old_value=old, new_value=changes
            )
            session.commit()
            return tax_rate

    def deactivate_tax_rate(self, tax_rate_id: str) -> TaxRate:
        return self.update_tax_rate(tax_rate_id, is_active=False)

    # ------------------------------------------------------------------
    # Products and variants
    # ------------------------------------------------------------------

    def create_product(self, name: str, description: Optional[str] = None) -> Product:
        if not (name or "").strip():
            raise ValidationError("name is required")
        product = Product(name=name, description=description)
        with get_session_context() as session:
            session.add(product)
            audit_service.record(session, "product", product.id, AuditAction.CREATED, new_value={"name": name})
            session.commit()
            session.refresh(product)
            return product

    def get_product(self, product_id: str) -> Product:
        with get_session_context() as session:
            product = session.get(Product, product_id)
            if product is None:
                raise NotFoundError("Product", product_id)
            return product

    def list_products(
        self,
        is_active: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[Product]:
        stmt = select(Product)
        if is_active is not None:
            stmt = stmt.where(Product.is_active == is_active)
        with get_session_context() as session:
            return paginate(session, stmt.order_by(Product.created_at.desc()), limit, offset)

    def add_variant(
        self,
        product_id: str,
        name: str,
        price: Any,
        sku: Optional[str] = None,
    ) -> ProductVariant:
        price = to_decimal(price)
        if price < 0:
            raise ValidationError("price must not be negative")

        with get_session_context() as session:
            if session.get(Product, product_id) is None:
                raise NotFoundError("Product", product_id)
            if sku and session.exec(select(ProductVariant).where(ProductVariant.sku == sku)).first():
                raise ConflictError(f"SKU already exists: {sku}")

            variant = ProductVariant(product_id=product_id, name=name, price=price, sku=sku)
            session.add(variant)
            audit_service.record(
                session, "product_variant", variant.id, AuditAction.CREATED,
                new_value={"product_id": product_id, "name": name, "price": price, "sku": sku},
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise ConflictError(f"SKU already exists: {sku}")
            return variant

    def get_variant(self, variant_id: str) -> ProductVariant:
        with get_session_context() as session:
            variant = session.get(ProductVariant, variant_id)
            if variant is None:
                raise NotFoundError("ProductVariant", variant_id)
            return variant


catalog_service = CatalogService()
