"""
Subscription Models
===================

- Subscription: a customer's recurring agreement on a plan. Status moves
  DRAFT → QUOTATION → CONFIRMED → ACTIVE → CLOSED (see
  app.services.state_machines).
- SubscriptionLine: one priced variant on the subscription. The unit price
  is a snapshot taken when the line is added, never re-read from the catalog.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel

from app.models.base import TimestampMixin, new_id, utcnow


class SubscriptionStatus(str, Enum):
    DRAFT = "DRAFT"
    QUOTATION = "QUOTATION"
    CONFIRMED = "CONFIRMED"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class Subscription(TimestampMixin, table=True):
    __tablename__ = "subscriptions"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    subscription_number: str = Field(unique=True, index=True, max_length=32)
    user_id: str = Field(index=True, max_length=128)
    plan_id: str = Field(foreign_key="recurring_plans.id", index=True, max_length=36)
    status: str = Field(default=SubscriptionStatus.DRAFT.value, index=True, max_length=16)

    # Set by `quote`
    quotation_template: Optional[str] = Field(default=None, nullable=True, max_length=128)
    expiration_date: Optional[date] = Field(default=None, nullable=True)

    start_date: Optional[date] = Field(default=None, nullable=True)
    end_date: Optional[date] = Field(default=None, nullable=True)
    order_date: Optional[date] = Field(default=None, nullable=True)
    next_billing_date: Optional[date] = Field(default=None, nullable=True)

    salesperson_id: Optional[str] = Field(default=None, nullable=True, max_length=128)
    payment_term_days: Optional[int] = Field(default=None, nullable=True)
    notes: Optional[str] = Field(default=None, nullable=True)

    lines: List["SubscriptionLine"] = Relationship(
        back_populates="subscription",
        sa_relationship_kwargs={
            "lazy": "selectin",
            "cascade": "all, delete-orphan",
            "order_by": "SubscriptionLine.position",
        },
    )


class SubscriptionLine(SQLModel, table=True):
    __tablename__ = "subscription_lines"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    subscription_id: str = Field(
        foreign_key="subscriptions.id", ondelete="CASCADE", index=True, max_length=36
    )
    position: int = Field(default=0)
    variant_id: str = Field(foreign_key="product_variants.id", max_length=36)
    quantity: int = Field(default=1)
    unit_price: Decimal = Field(max_digits=12, decimal_places=2)
    discount_id: Optional[str] = Field(default=None, nullable=True, foreign_key="discounts.id", max_length=36)
    tax_rate_id: Optional[str] = Field(default=None, nullable=True, foreign_key="tax_rates.id", max_length=36)
    notes: Optional[str] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=utcnow)

    subscription: Optional[Subscription] = Relationship(back_populates="lines")
