"""
Accounting API Endpoints

Monthly revenue and refund summary for dashboards.
"""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from woo_accounting.aggregation.monthly import MonthlyAggregator, summarize
from woo_accounting.aggregation.scheduler import MAX_CONCURRENCY, MIN_CONCURRENCY
from woo_accounting.aggregation.window import MAX_YEAR, MIN_YEAR, parse_statuses, resolve_window
from woo_accounting.config.settings import Settings, get_settings
from woo_accounting.serving.api.dependencies import get_aggregator

router = APIRouter()
logger = structlog.get_logger(__name__)

MAX_PREVIEW = 1000


class MonthBucketOut(BaseModel):
    """Totals of one calendar month"""
    month: str
    orders_count: int
    gross_sales: float
    refunds_count: int
    refunds_total: float
    net_revenue: float


class TotalsOut(BaseModel):
    """Totals over the whole window"""
    orders_count: int
    gross_sales: float
    refunds_count: int
    refunds_total: float
    net_revenue: float


class WindowOut(BaseModel):
    """Half-open creation window sent upstream"""
    after: str
    before: str


class PolicyOut(BaseModel):
    """Accounting rules applied to the report"""
    payment_amount: str
    refunds: str


class AccountingResponse(BaseModel):
    """Monthly accounting report"""
    ok: bool = True
    window: WindowOut
    statuses: List[str]
    policy: PolicyOut
    months: List[MonthBucketOut]
    totals: TotalsOut


@router.get("/accounting", response_model=AccountingResponse)
async def get_accounting(
    year: int = Query(..., ge=MIN_YEAR, le=MAX_YEAR, description="Report year"),
    statuses: Optional[str] = Query(
        None,
        description="Comma-separated order statuses; configured defaults when omitted",
    ),
    month: Optional[int] = Query(None, ge=1, le=12, description="Single month of the year"),
    preview: Optional[int] = Query(None, ge=1, le=MAX_PREVIEW, description="Max orders per status"),
    refunds_concurrency: Optional[int] = Query(
        None,
        ge=MIN_CONCURRENCY,
        le=MAX_CONCURRENCY,
        description="Concurrent refund lookups",
    ),
    settings: Settings = Depends(get_settings),
    aggregator: MonthlyAggregator = Depends(get_aggregator),
) -> AccountingResponse:
    """
    Get the monthly accounting summary of a year or of one month.

    Every month of the window is present, zero-filled when empty.
    """
    status_list = parse_statuses(
        settings.accounting.default_statuses if statuses is None else statuses
    )
    window = resolve_window(year, month)

    buckets = await aggregator.aggregate(
        year,
        month,
        status_list,
        preview=preview,
        refunds_concurrency=refunds_concurrency,
    )

    logger.info(
        "Accounting report built",
        year=year,
        month=month,
        statuses=status_list,
        months=len(buckets),
    )

    return AccountingResponse(
        window=WindowOut(**window.to_dict()),
        statuses=status_list,
        policy=PolicyOut(
            payment_amount=settings.accounting.payment_amount_mode.value,
            refunds=aggregator.refund_scope.value,
        ),
        months=[MonthBucketOut(**bucket.to_dict()) for bucket in buckets],
        totals=TotalsOut(**summarize(buckets)),
    )
