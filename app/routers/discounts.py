"""
Discounts Router
================

- POST  /api/discounts                   — create
- GET   /api/discounts                   — paginated list (is_active filter)
- GET   /api/discounts/by-code/{code}    — lookup by code
- GET   /api/discounts/{id}              — detail
- PATCH /api/discounts/{id}              — partial update
- POST  /api/discounts/{id}/deactivate   — soft disable
- POST  /api/discounts/validate          — check a code against a cart (never consumes it)
- POST  /api/discounts/{id}/apply        — record one usage in the ledger
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from app.core.async_utils import run_sync
from app.models.discount import DiscountType
from app.models.responses import (
    DiscountResponse,
    DiscountUsageResponse,
    DiscountValidationResponse,
    PageResponse,
    to_page,
)
from app.services.discount_service import CartItem, discount_service

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateDiscountRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: DiscountType
    value: Decimal
    code: Optional[str] = Field(default=None, max_length=64)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    max_uses_per_user: Optional[int] = Field(default=None, ge=1)
    min_purchase_amount: Optional[Decimal] = Field(default=None, ge=0)
    applicable_product_ids: List[str] = []


class UpdateDiscountRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[DiscountType] = None
    value: Optional[Decimal] = None
    code: Optional[str] = Field(default=None, max_length=64)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    max_uses_per_user: Optional[int] = Field(default=None, ge=1)
    min_purchase_amount: Optional[Decimal] = Field(default=None, ge=0)
    applicable_product_ids: Optional[List[str]] = None


class CartItemRequest(BaseModel):
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    variant_id: Optional[str] = None
    product_id: Optional[str] = None


class ValidateDiscountRequest(BaseModel):
    code: str = Field(..., min_length=1)
    cart_items: List[CartItemRequest] = []
    user_id: Optional[str] = None


class ApplyDiscountRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    invoice_id: Optional[str] = None


@router.post("", response_model=DiscountResponse, status_code=status.HTTP_201_CREATED)
async def create_discount(body: CreateDiscountRequest):
    values = body.model_dump()
    values["type"] = body.type.value
    discount = await run_sync(discount_service.create_discount, **values)
    return DiscountResponse.model_validate(discount)


@router.get("", response_model=PageResponse[DiscountResponse])
async def list_discounts(is_active: Optional[bool] = None, limit: Optional[int] = None, offset: int = 0):
    page = await run_sync(discount_service.list_discounts, is_active=is_active, limit=limit, offset=offset)
    return to_page(page, DiscountResponse)


@router.post("/validate", response_model=DiscountValidationResponse)
async def validate_discount(body: ValidateDiscountRequest):
    """An unusable code is reported as valid=false with a message, not an error."""
    cart = [CartItem(**item.model_dump()) for item in body.cart_items]
    result = await run_sync(discount_service.validate_discount_code, body.code, cart, user_id=body.user_id)
    return DiscountValidationResponse.model_validate(result)


@router.get("/by-code/{code}", response_model=DiscountResponse)
async def get_discount_by_code(code: str):
    discount = await run_sync(discount_service.get_discount_by_code, code)
    return DiscountResponse.model_validate(discount)


@router.get("/{discount_id}", response_model=DiscountResponse)
async def get_discount(discount_id: str):
    discount = await run_sync(discount_service.get_discount, discount_id)
    return DiscountResponse.model_validate(discount)


@router.patch("/{discount_id}", response_model=DiscountResponse)
async def update_discount(discount_id: str, body: UpdateDiscountRequest):
    changes = body.model_dump(exclude_unset=True)
    if body.type is not None:
        changes["type"] = body.type.value
    discount = await run_sync(discount_service.update_discount, discount_id, **changes)
    return DiscountResponse.model_validate(discount)


@router.post("/{discount_id}/deactivate", response_model=DiscountResponse)
async def deactivate_discount(discount_id: str):
    discount = await run_sync(discount_service.deactivate_discount, discount_id)
    return DiscountResponse.model_validate(discount)


@router.post("/{discount_id}/apply", response_model=DiscountUsageResponse, status_code=status.HTTP_201_CREATED)
async def apply_discount(discount_id: str, body: ApplyDiscountRequest):
    usage = await run_sync(
        discount_service.apply_discount_code, discount_id, body.user_id, invoice_id=body.invoice_id
    )
    return DiscountUsageResponse.model_validate(usage)
