"""
Catalog Models
==============

SQLModel tables for the priced catalog that subscriptions reference:
- RecurringPlan: billing cadence (period × interval count) and due-days offset.
- Product / ProductVariant: what is sold; variants carry the list price.
- TaxRate: named percentage applied to a line's taxable amount.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel

from app.config import settings
from app.models.base import new_id, utcnow


class BillingPeriod(str, Enum):
    """Cadence unit a plan invoices at."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class RecurringPlan(SQLModel, table=True):
    __tablename__ = "recurring_plans"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(max_length=255)
    billing_period: str = Field(default=BillingPeriod.MONTHLY.value, max_length=16)
    interval_count: int = Field(default=1)
    due_days: int = Field(default_factory=lambda: settings.billing_default_due_days)
    description: Optional[str] = Field(default=None, nullable=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)


class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, nullable=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)

    variants: List["ProductVariant"] = Relationship(
        back_populates="product",
        sa_relationship_kwargs={"lazy": "selectin", "order_by": "ProductVariant.created_at"},
    )


class ProductVariant(SQLModel, table=True):
    __tablename__ = "product_variants"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    product_id: str = Field(foreign_key="products.id", index=True, max_length=36)
    name: str = Field(max_length=255)
    sku: Optional[str] = Field(default=None, unique=True, nullable=True, max_length=64)
    price: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)

    product: Optional[Product] = Relationship(back_populates="variants")


class TaxRate(SQLModel, table=True):
    __tablename__ = "tax_rates"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(max_length=255)
    rate: Decimal = Field(max_digits=7, decimal_places=3)  # percent, e.g. 18.000
    description: Optional[str] = Field(default=None, nullable=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
