"""
Payments Router
===============

- POST /api/invoices/{id}/payments  — record a payment (CONFIRMED invoices only)
- GET  /api/invoices/{id}/payments  — payments for one invoice, newest first
- GET  /api/payments                — paginated list of all payments
- GET  /api/payments/{id}           — one payment
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from app.core.async_utils import run_sync
from app.models.invoice import PaymentMethod
from app.models.responses import PageResponse, PaymentResponse, to_page
from app.services.payment_service import payment_service

logger = logging.getLogger(__name__)

router = APIRouter()


class RecordPaymentRequest(BaseModel):
    amount: Decimal = Field(..., description="Must be greater than zero")
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    payment_date: Optional[date] = None


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(invoice_id: str, body: RecordPaymentRequest):
    payment = await run_sync(
        payment_service.record_payment,
        invoice_id,
        body.amount,
        method=body.method.value,
        reference=body.reference,
        notes=body.notes,
        payment_date=body.payment_date,
    )
    return PaymentResponse.model_validate(payment)


@router.get("/invoices/{invoice_id}/payments", response_model=List[PaymentResponse])
async def list_invoice_payments(invoice_id: str):
    payments = await run_sync(payment_service.list_payments_for_invoice, invoice_id)
    return [PaymentResponse.model_validate(p) for p in payments]


@router.get("/payments", response_model=PageResponse[PaymentResponse])
async def list_payments(limit: Optional[int] = None, offset: int = 0):
    page = await run_sync(payment_service.list_payments, limit=limit, offset=offset)
    return to_page(page, PaymentResponse)


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: str):
    payment = await run_sync(payment_service.get_payment, payment_id)
    return PaymentResponse.model_validate(payment)
