"""
Subscriptions Router
====================

- POST   /api/subscriptions                       — create (DRAFT)
- GET    /api/subscriptions                       — paginated list
- GET    /api/subscriptions/{id}                  — detail with lines
- PATCH  /api/subscriptions/{id}                  — edit header (DRAFT/QUOTATION/CONFIRMED)
- POST   /api/subscriptions/{id}/lines            — add line (DRAFT/QUOTATION)
- DELETE /api/subscriptions/{id}/lines/{line_id}  — remove line
- POST   /api/subscriptions/{id}/quote|confirm|activate|close|renew
- POST   /api/subscriptions/{id}/invoices         — generate invoice (idempotent)
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from app.core.async_utils import run_sync
from app.models.responses import (
    InvoiceResponse,
    PageResponse,
    SubscriptionLineResponse,
    SubscriptionResponse,
    to_page,
)
from app.models.subscription import SubscriptionStatus
from app.services.invoice_service import invoice_service
from app.services.subscription_service import subscription_service

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class CreateSubscriptionRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)
    plan_id: str
    salesperson_id: Optional[str] = None
    payment_term_days: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    quotation_template: Optional[str] = None
    expiration_date: Optional[date] = None
    start_date: Optional[date] = None


class UpdateSubscriptionRequest(BaseModel):
    quotation_template: Optional[str] = None
    expiration_date: Optional[date] = None
    payment_term_days: Optional[int] = Field(default=None, ge=0)
    salesperson_id: Optional[str] = None
    notes: Optional[str] = None


class AddLineRequest(BaseModel):
    variant_id: str
    quantity: int = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0, description="Defaults to the variant's catalog price")
    discount_id: Optional[str] = None
    tax_rate_id: Optional[str] = None
    notes: Optional[str] = None


class QuoteRequest(BaseModel):
    quotation_template: Optional[str] = None
    expiration_date: Optional[date] = None


class ConfirmRequest(BaseModel):
    start_date: Optional[date] = None


class CloseRequest(BaseModel):
    end_date: Optional[date] = None


class GenerateInvoiceRequest(BaseModel):
    period_start: date


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription(body: CreateSubscriptionRequest):
    subscription = await run_sync(subscription_service.create_subscription, **body.model_dump())
    return SubscriptionResponse.model_validate(subscription)


@router.get("", response_model=PageResponse[SubscriptionResponse])
async def list_subscriptions(
    user_id: Optional[str] = None,
    status_filter: Optional[SubscriptionStatus] = Query(default=None, alias="status"),
    limit: Optional[int] = None,
    offset: int = 0,
):
    page = await run_sync(
        subscription_service.list_subscriptions,
        user_id=user_id,
        status=status_filter.value if status_filter else None,
        limit=limit,
        offset=offset,
    )
    return to_page(page, SubscriptionResponse)


@router.get("/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(subscription_id: str):
    subscription = await run_sync(subscription_service.get_subscription, subscription_id)
    return SubscriptionResponse.model_validate(subscription)


@router.patch("/{subscription_id}", response_model=SubscriptionResponse)
async def update_subscription(subscription_id: str, body: UpdateSubscriptionRequest):
    """Edit header fields. Only the fields present in the body change."""
    subscription = await run_sync(
        subscription_service.update_subscription, subscription_id, **body.model_dump(exclude_unset=True)
    )
    return SubscriptionResponse.model_validate(subscription)


@router.post(
    "/{subscription_id}/lines",
    response_model=SubscriptionLineResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_line(subscription_id: str, body: AddLineRequest):
    line = await run_sync(subscription_service.add_line, subscription_id, **body.model_dump())
    return SubscriptionLineResponse.model_validate(line)


@router.delete("/{subscription_id}/lines/{line_id}", response_model=SubscriptionResponse)
async def remove_line(subscription_id: str, line_id: str):
    subscription = await run_sync(subscription_service.remove_line, subscription_id, line_id)
    return SubscriptionResponse.model_validate(subscription)


@router.post("/{subscription_id}/quote", response_model=SubscriptionResponse)
async def quote(subscription_id: str, body: Optional[QuoteRequest] = None):
    body = body or QuoteRequest()
    subscription = await run_sync(subscription_service.quote, subscription_id, **body.model_dump())
    return SubscriptionResponse.model_validate(subscription)


@router.post("/{subscription_id}/confirm", response_model=SubscriptionResponse)
async def confirm(subscription_id: str, body: Optional[ConfirmRequest] = None):
    body = body or ConfirmRequest()
    subscription = await run_sync(subscription_service.confirm, subscription_id, start_date=body.start_date)
    return SubscriptionResponse.model_validate(subscription)


@router.post("/{subscription_id}/activate", response_model=SubscriptionResponse)
async def activate(subscription_id: str):
    subscription = await run_sync(subscription_service.activate, subscription_id)
    return SubscriptionResponse.model_validate(subscription)


@router.post("/{subscription_id}/close", response_model=SubscriptionResponse)
async def close(subscription_id: str, body: Optional[CloseRequest] = None):
    body = body or CloseRequest()
    subscription = await run_sync(subscription_service.close, subscription_id, end_date=body.end_date)
    return SubscriptionResponse.model_validate(subscription)


@router.post("/{subscription_id}/renew", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def renew(subscription_id: str):
    subscription = await run_sync(subscription_service.renew, subscription_id)
    return SubscriptionResponse.model_validate(subscription)


@router.post("/{subscription_id}/invoices", response_model=InvoiceResponse)
async def generate_invoice(subscription_id: str, body: GenerateInvoiceRequest):
    """Generate the invoice for one billing period. Safe to retry: the same
    period_start always returns the same invoice."""
    invoice = await run_sync(invoice_service.generate_invoice, subscription_id, body.period_start)
    return InvoiceResponse.model_validate(invoice)
