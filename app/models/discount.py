"""
Discount Models
===============

- Discount: percentage or fixed reduction, optionally addressed by a code,
  bounded by a validity window, usage caps and a minimum purchase.
- DiscountUsage: append-only redemption ledger. Caps are enforced by
  counting rows; rows are never updated or deleted.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlmodel import JSON, Column, Field, SQLModel

from app.models.base import new_id, utcnow


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class Discount(SQLModel, table=True):
    __tablename__ = "discounts"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(max_length=255)
    code: Optional[str] = Field(default=None, unique=True, index=True, nullable=True, max_length=64)
    type: str = Field(default=DiscountType.PERCENTAGE.value, max_length=16)
    value: Decimal = Field(max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, nullable=True)

    # Validity window; a missing bound is unbounded
    start_date: Optional[date] = Field(default=None, nullable=True)
    end_date: Optional[date] = Field(default=None, nullable=True)

    # Caps, counted against discount_usages
    max_uses: Optional[int] = Field(default=None, nullable=True)
    max_uses_per_user: Optional[int] = Field(default=None, nullable=True)

    min_purchase_amount: Optional[Decimal] = Field(
        default=None, nullable=True, max_digits=12, decimal_places=2
    )
    applicable_product_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)


class DiscountUsage(SQLModel, table=True):
    """One redemption of a discount by a user."""

    __tablename__ = "discount_usages"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    discount_id: str = Field(foreign_key="discounts.id", index=True, max_length=36)
    user_id: str = Field(index=True, max_length=128)
    invoice_id: Optional[str] = Field(default=None, nullable=True, foreign_key="invoices.id", max_length=36)
    used_at: datetime = Field(default_factory=utcnow)
