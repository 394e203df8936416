"""
Reports Router
==============

Live rollups, nothing cached.

- GET /api/reports/summary        — headline numbers (optional date bounds)
- GET /api/reports/subscriptions  — subscription count per status
- GET /api/reports/revenue        — PAID invoice totals bucketed by day or month
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query

from app.core.async_utils import run_sync
from app.models.responses import (
    ReportSummaryResponse,
    RevenueBucketResponse,
    SubscriptionMetricsResponse,
)
from app.services.report_service import report_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/summary", response_model=ReportSummaryResponse)
async def summary(date_from: Optional[date] = None, date_to: Optional[date] = None):
    result = await run_sync(report_service.get_summary, date_from=date_from, date_to=date_to)
    return ReportSummaryResponse.model_validate(result)


@router.get("/subscriptions", response_model=SubscriptionMetricsResponse)
async def subscription_metrics():
    counts = await run_sync(report_service.get_subscription_metrics)
    return {"counts": counts}


@router.get("/revenue", response_model=List[RevenueBucketResponse])
async def revenue(
    date_from: date,
    date_to: date,
    group_by: str = Query(default="day", description="day or month"),
):
    buckets = await run_sync(report_service.get_revenue_by_period, date_from, date_to, group_by=group_by)
    return [RevenueBucketResponse.model_validate(b) for b in buckets]
