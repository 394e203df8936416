"""
Invoice Models
==============

- Invoice: one billing period of one subscription. (subscription_id,
  period_start) is unique; that constraint is what makes generation
  idempotent under concurrent callers.
- InvoiceLine: amounts copied from the subscription line at generation
  time. No reference back to the subscription line.
- Payment: immutable money received against an invoice.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

from app.models.base import TimestampMixin, new_id, utcnow

ZERO = Decimal("0.00")


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"
    CANCELED = "CANCELED"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CREDIT_CARD = "CREDIT_CARD"
    CASH = "CASH"
    CHECK = "CHECK"
    OTHER = "OTHER"


class Invoice(TimestampMixin, table=True):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("subscription_id", "period_start", name="uq_invoices_subscription_period"),
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    invoice_number: str = Field(unique=True, index=True, max_length=32)
    subscription_id: str = Field(foreign_key="subscriptions.id", index=True, max_length=36)
    status: str = Field(default=InvoiceStatus.DRAFT.value, index=True, max_length=16)

    period_start: date
    period_end: date
    issue_date: date
    due_date: date

    subtotal: Decimal = Field(default=ZERO, max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(default=ZERO, max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(default=ZERO, max_digits=12, decimal_places=2)
    total: Decimal = Field(default=ZERO, max_digits=12, decimal_places=2)
    paid_amount: Decimal = Field(default=ZERO, max_digits=12, decimal_places=2)

    lines: List["InvoiceLine"] = Relationship(
        back_populates="invoice",
        sa_relationship_kwargs={
            "lazy": "selectin",
            "cascade": "all, delete-orphan",
            "order_by": "InvoiceLine.position",
        },
    )
    payments: List["Payment"] = Relationship(
        back_populates="invoice",
        sa_relationship_kwargs={"lazy": "selectin", "order_by": "Payment.created_at"},
    )


class InvoiceLine(SQLModel, table=True):
    __tablename__ = "invoice_lines"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    invoice_id: str = Field(foreign_key="invoices.id", ondelete="CASCADE", index=True, max_length=36)
    position: int = Field(default=0)
    description: str = Field(max_length=512)
    variant_id: Optional[str] = Field(default=None, nullable=True, max_length=36)
    quantity: int
    unit_price: Decimal = Field(max_digits=12, decimal_places=2)
    line_subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(default=ZERO, max_digits=12, decimal_places=2)
    taxable_amount: Decimal = Field(max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(default=ZERO, max_digits=12, decimal_places=2)
    line_total: Decimal = Field(max_digits=12, decimal_places=2)

    invoice: Optional[Invoice] = Relationship(back_populates="lines")


class Payment(SQLModel, table=True):
    __tablename__ = "payments"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    invoice_id: str = Field(foreign_key="invoices.id", index=True, max_length=36)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    method: str = Field(default=PaymentMethod.BANK_TRANSFER.value, max_length=32)
    reference: Optional[str] = Field(default=None, nullable=True, max_length=255)
    notes: Optional[str] = Field(default=None, nullable=True)
    payment_date: date
    created_at: datetime = Field(default_factory=utcnow)

    invoice: Optional[Invoice] = Relationship(back_populates="payments")
