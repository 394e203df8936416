"""
Invoices Router
===============

- GET  /api/invoices                       — paginated list (subscription, status, overdue filters)
- GET  /api/invoices/{id}                  — detail with lines and payments
- POST /api/invoices/{id}/confirm          — DRAFT → CONFIRMED
- POST /api/invoices/{id}/cancel           — DRAFT|CONFIRMED → CANCELED
- POST /api/invoices/{id}/restore          — CANCELED → DRAFT

Invoices are created only by POST /api/subscriptions/{id}/invoices.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from app.core.async_utils import run_sync
from app.models.invoice import InvoiceStatus
from app.models.responses import InvoiceResponse, PageResponse, to_page
from app.services.invoice_service import invoice_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=PageResponse[InvoiceResponse])
async def list_invoices(
    subscription_id: Optional[str] = None,
    status_filter: Optional[InvoiceStatus] = Query(default=None, alias="status"),
    overdue: Optional[bool] = None,
    limit: Optional[int] = None,
    offset: int = 0,
):
    page = await run_sync(
        invoice_service.list_invoices,
        subscription_id=subscription_id,
        status=status_filter.value if status_filter else None,
        overdue=overdue,
        limit=limit,
        offset=offset,
    )
    return to_page(page, InvoiceResponse)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: str):
    invoice = await run_sync(invoice_service.get_invoice, invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/confirm", response_model=InvoiceResponse)
async def confirm_invoice(invoice_id: str):
    invoice = await run_sync(invoice_service.confirm_invoice, invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(invoice_id: str):
    invoice = await run_sync(invoice_service.cancel_invoice, invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/restore", response_model=InvoiceResponse)
async def restore_invoice(invoice_id: str):
    invoice = await run_sync(invoice_service.restore_invoice, invoice_id)
    return InvoiceResponse.model_validate(invoice)
