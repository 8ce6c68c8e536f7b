"""
Flat Orders API Endpoints

Payment and refund rows of a period, as JSON or as a CSV attachment.
"""

from enum import Enum
from typing import List, Optional, Union

import structlog
from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel

from woo_accounting.aggregation.ledger import OrderLedger
from woo_accounting.aggregation.window import MAX_YEAR, MIN_YEAR, parse_statuses
from woo_accounting.config.settings import Settings, get_settings
from woo_accounting.serving.api.dependencies import get_ledger
from woo_accounting.serving.export import rows_to_csv

router = APIRouter()
logger = structlog.get_logger(__name__)

MAX_LIMIT = 5000


class ExportFormat(str, Enum):
    """Response formats of the flat orders endpoint"""
    JSON = "json"
    CSV = "csv"


class FlatRowOut(BaseModel):
    """One payment or refund line"""
    date: str
    reference: str
    last_name: str
    first_name: str
    nature: str
    payment_method: str
    amount: float
    currency: str
    status: str
    city: str


class FlatOrdersResponse(BaseModel):
    """Flat rows of a period"""
    ok: bool = True
    count: int
    rows: List[FlatRowOut]


@router.get("/orders-flat", response_model=None)
async def get_orders_flat(
    year: int = Query(..., ge=MIN_YEAR, le=MAX_YEAR, description="Year of the orders"),
    month: Optional[int] = Query(None, ge=1, le=12, description="Single month of the year"),
    statuses: Optional[str] = Query(
        None,
        description="Comma-separated order statuses; configured defaults when omitted",
    ),
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIMIT, description="Max orders per status"),
    include_refunds: bool = Query(True, description="Add one negative row per refund"),
    export_format: ExportFormat = Query(ExportFormat.JSON, alias="format"),
    settings: Settings = Depends(get_settings),
    ledger: OrderLedger = Depends(get_ledger),
) -> Union[FlatOrdersResponse, Response]:
    """
    List orders of a period as flat transaction rows.

    `format=csv` returns a `;`-separated attachment with comma decimals.
    """
    status_list = parse_statuses(
        settings.accounting.default_statuses if statuses is None else statuses
    )

    rows = await ledger.flat_rows(
        year,
        month,
        status_list,
        limit=limit,
        include_refunds=include_refunds,
    )

    logger.info(
        "Flat orders built",
        year=year,
        month=month,
        statuses=status_list,
        rows=len(rows),
        format=export_format.value,
    )

    if export_format is ExportFormat.CSV:
        period = f"{year}-{month:02d}" if month else str(year)
        return Response(
            content=rows_to_csv(rows),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="orders-{period}.csv"'},
        )

    return FlatOrdersResponse(
        count=len(rows),
        rows=[FlatRowOut(**row.to_dict()) for row in rows],
    )
