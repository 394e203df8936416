"""
Catalog Router
==============

Reference data subscriptions are priced against.

- POST|GET /api/plans, GET|PATCH /api/plans/{id}, POST /api/plans/{id}/deactivate
- POST|GET /api/tax-rates, GET|PATCH /api/tax-rates/{id}, POST /api/tax-rates/{id}/deactivate
- POST|GET /api/products, GET /api/products/{id}
- POST /api/products/{id}/variants, GET /api/variants/{id}
"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from app.core.async_utils import run_sync
from app.models.catalog import BillingPeriod
from app.models.responses import (
    PageResponse,
    PlanResponse,
    ProductResponse,
    TaxRateResponse,
    VariantResponse,
    to_page,
)
from app.services.catalog_service import catalog_service

logger = logging.getLogger(__name__)

router = APIRouter()


class CreatePlanRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    interval_count: int = Field(default=1, ge=1)
    due_days: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None


class UpdatePlanRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    billing_period: Optional[BillingPeriod] = None
    interval_count: Optional[int] = Field(default=None, ge=1)
    due_days: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class CreateTaxRateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    rate: Decimal = Field(..., ge=0, le=100, description="Percent, e.g. 18.000")
    description: Optional[str] = None


class UpdateTaxRateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class AddVariantRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0)
    sku: Optional[str] = Field(default=None, max_length=64)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(body: CreatePlanRequest):
    values = body.model_dump()
    values["billing_period"] = body.billing_period.value
    plan = await run_sync(catalog_service.create_plan, **values)
    return PlanResponse.model_validate(plan)


@router.get("/plans", response_model=PageResponse[PlanResponse])
async def list_plans(is_active: Optional[bool] = None, limit: Optional[int] = None, offset: int = 0):
    page = await run_sync(catalog_service.list_plans, is_active=is_active, limit=limit, offset=offset)
    return to_page(page, PlanResponse)


@router.get("/plans/{plan_id}", response_model=PlanResponse)
async def get_plan(plan_id: str):
    plan = await run_sync(catalog_service.get_plan, plan_id)
    return PlanResponse.model_validate(plan)


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
async def update_plan(plan_id: str, body: UpdatePlanRequest):
    changes = body.model_dump(exclude_unset=True)
    if body.billing_period is not None:
        changes["billing_period"] = body.billing_period.value
    plan = await run_sync(catalog_service.update_plan, plan_id, **changes)
    return PlanResponse.model_validate(plan)


@router.post("/plans/{plan_id}/deactivate", response_model=PlanResponse)
async def deactivate_plan(plan_id: str):
    plan = await run_sync(catalog_service.deactivate_plan, plan_id)
    return PlanResponse.model_validate(plan)


# ---------------------------------------------------------------------------
# Tax rates
# ---------------------------------------------------------------------------

@router.post("/tax-rates", response_model=TaxRateResponse, status_code=status.HTTP_201_CREATED)
async def create_tax_rate(body: CreateTaxRateRequest):
    tax_rate = await run_sync(catalog_service.create_tax_rate, **body.model_dump())
    return TaxRateResponse.model_validate(tax_rate)


@router.get("/tax-rates", response_model=PageResponse[TaxRateResponse])
async def list_tax_rates(is_active: Optional[bool] = None, limit: Optional[int] = None, offset: int = 0):
    page = await run_sync(catalog_service.list_tax_rates, is_active=is_active, limit=limit, offset=offset)
    return to_page(page, TaxRateResponse)


@router.get("/tax-rates/{tax_rate_id}", response_model=TaxRateResponse)
async def get_tax_rate(tax_rate_id: str):
    tax_rate = await run_sync(catalog_service.get_tax_rate, tax_rate_id)
    return TaxRateResponse.model_validate(tax_rate)


@router.patch("/tax-rates/{tax_rate_id}", response_model=TaxRateResponse)
async def update_tax_rate(tax_rate_id: str, body: UpdateTaxRateRequest):
    tax_rate = await run_sync(
        catalog_service.update_tax_rate, tax_rate_id, **body.model_dump(exclude_unset=True)
    )
    return TaxRateResponse.model_validate(tax_rate)


@router.post("/tax-rates/{tax_rate_id}/deactivate", response_model=TaxRateResponse)
async def deactivate_tax_rate(tax_rate_id: str):
    tax_rate = await run_sync(catalog_service.deactivate_tax_rate, tax_rate_id)
    return TaxRateResponse.model_validate(tax_rate)


# ---------------------------------------------------------------------------
# Products and variants
# ---------------------------------------------------------------------------

@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(body: CreateProductRequest):
    product = await run_sync(catalog_service.create_product, **body.model_dump())
    return ProductResponse.model_validate(product)


@router.get("/products", response_model=PageResponse[ProductResponse])
async def list_products(is_active: Optional[bool] = None, limit: Optional[int] = None, offset: int = 0):
    page = await run_sync(catalog_service.list_products, is_active=is_active, limit=limit, offset=offset)
    return to_page(page, ProductResponse)


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str):
    product = await run_sync(catalog_service.get_product, product_id)
    return ProductResponse.model_validate(product)


@router.post(
    "/products/{product_id}/variants",
    response_model=VariantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_variant(product_id: str, body: AddVariantRequest):
    variant = await run_sync(catalog_service.add_variant, product_id, **body.model_dump())
    return VariantResponse.model_validate(variant)


@router.get("/variants/{variant_id}", response_model=VariantResponse)
async def get_variant(variant_id: str):
    variant = await run_sync(catalog_service.get_variant, variant_id)
    return VariantResponse.model_validate(variant)
