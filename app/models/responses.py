"""
Standardized response models for API documentation.

Money fields are Decimal and serialize as strings ("2121.88") so no
client ever sees a binary float.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.services.state_machines import allowed_invoice_actions, allowed_subscription_actions

T = TypeVar("T")


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PageResponse(BaseModel, Generic[T]):
    """Paginated list envelope."""
    items: List[T]
    total: int = Field(..., example=42, description="Rows matching the filters, ignoring pagination")
    limit: int = Field(..., example=20, description="Applied page size")
    offset: int = Field(..., example=0, description="Applied offset")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., example="ok", description="Service health status")
    version: str = Field(..., example="0.3.0")
    service: str = Field(..., example="subledger")
    database: str = Field(..., example="ok", description="Result of a trivial query")
    uptime_s: float = Field(..., example=12.3)
    timestamp: str = Field(..., example="2026-01-15T10:30:00+00:00", description="ISO timestamp")


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class PlanResponse(ORMModel):
    id: str
    name: str
    billing_period: str
    interval_count: int
    due_days: int
    description: Optional[str] = None
    is_active: bool
    created_at: datetime


class TaxRateResponse(ORMModel):
    id: str
    name: str
    rate: Decimal
    description: Optional[str] = None
    is_active: bool
    created_at: datetime


class VariantResponse(ORMModel):
    id: str
    product_id: str
    name: str
    sku: Optional[str] = None
    price: Decimal
    is_active: bool


class ProductResponse(ORMModel):
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    variants: List[VariantResponse] = []


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

class SubscriptionLineResponse(ORMModel):
    id: str
    subscription_id: str
    position: int
    variant_id: str
    quantity: int
    unit_price: Decimal
    discount_id: Optional[str] = None
    tax_rate_id: Optional[str] = None
    notes: Optional[str] = None


class SubscriptionResponse(ORMModel):
    id: str
    subscription_number: str
    user_id: str
    plan_id: str
    status: str
    quotation_template: Optional[str] = None
    expiration_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    order_date: Optional[date] = None
    next_billing_date: Optional[date] = None
    salesperson_id: Optional[str] = None
    payment_term_days: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    lines: List[SubscriptionLineResponse] = []

    @computed_field
    @property
    def allowed_actions(self) -> List[str]:
        return allowed_subscription_actions(self.status)


# ---------------------------------------------------------------------------
# Invoices and payments
# ---------------------------------------------------------------------------

class InvoiceLineResponse(ORMModel):
    id: str
    position: int
    description: str
    variant_id: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal


class PaymentResponse(ORMModel):
    id: str
    invoice_id: str
    amount: Decimal
    method: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    payment_date: date
    created_at: datetime


class InvoiceResponse(ORMModel):
    id: str
    invoice_number: str
    subscription_id: str
    status: str
    period_start: date
    period_end: date
    issue_date: date
    due_date: date
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    paid_amount: Decimal
    created_at: datetime
    updated_at: datetime
    lines: List[InvoiceLineResponse] = []
    payments: List[PaymentResponse] = []

    @computed_field
    @property
    def is_overdue(self) -> bool:
        return self.status == "CONFIRMED" and self.due_date < date.today()

    @computed_field
    @property
    def balance_due(self) -> Decimal:
        return max(self.total - self.paid_amount, Decimal("0.00"))

    @computed_field
    @property
    def allowed_actions(self) -> List[str]:
        return allowed_invoice_actions(self.status)


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------

class DiscountResponse(ORMModel):
    id: str
    name: str
    code: Optional[str] = None
    type: str
    value: Decimal
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_uses: Optional[int] = None
    max_uses_per_user: Optional[int] = None
    min_purchase_amount: Optional[Decimal] = None
    applicable_product_ids: List[str] = []
    is_active: bool
    created_at: datetime


class DiscountUsageResponse(ORMModel):
    id: str
    discount_id: str
    user_id: str
    invoice_id: Optional[str] = None
    used_at: datetime


class DiscountValidationResponse(ORMModel):
    valid: bool
    discount: Optional[DiscountResponse] = None
    discount_amount: Optional[Decimal] = None
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class ReportSummaryResponse(ORMModel):
    active_subscriptions_count: int
    total_revenue: Decimal
    total_payments: Decimal
    overdue_invoices_count: int
    draft_invoices_count: int
    confirmed_invoices_count: int
    paid_invoices_count: int


class RevenueBucketResponse(ORMModel):
    period: str = Field(..., example="2026-02", description="Day (YYYY-MM-DD) or month (YYYY-MM)")
    revenue: Decimal
    invoice_count: int


class SubscriptionMetricsResponse(BaseModel):
    counts: Dict[str, int]


class AuditLogResponse(ORMModel):
    id: str
    actor_id: str
    entity_type: str
    entity_id: str
    action: str
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    created_at: datetime


class ErrorBody(BaseModel):
    code: str = Field(..., example="SUB-API-001")
    title: str
    message: str
    detail: Optional[str] = None
    retryable: bool
    remediation: List[str] = []


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: ErrorBody


def to_page(page: Any, model: type) -> Dict[str, Any]:
    """Serialize a service Page into the list envelope."""
    return {
        "items": [model.model_validate(item) for item in page.items],
        "total": page.total,
        "limit": page.limit,
        "offset": page.offset,
    }
