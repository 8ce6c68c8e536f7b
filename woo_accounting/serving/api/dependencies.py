"""
API Dependencies

Builds the request-scoped pipeline objects from the process settings and
guards the reporting endpoints with the static bearer token.
"""

import secrets
from typing import Optional

import httpx
import structlog
from fastapi import Depends, Header, HTTPException, Request

from woo_accounting.aggregation.ledger import OrderLedger
from woo_accounting.aggregation.monthly import MonthlyAggregator
from woo_accounting.config.settings import Settings, get_settings
from woo_accounting.ingestion.client import WooCommerceClient
from woo_accounting.transformation.flattener import RowFlattener

logger = structlog.get_logger(__name__)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared upstream connection pool created by the application lifespan"""
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise RuntimeError("HTTP client not initialized. Is the application lifespan running?")
    return client


async def require_token(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Compare the bearer token against the configured secret.

    No configured secret means the endpoints are open.
    """
    if not settings.security.token_defined:
        return

    expected = settings.security.api_token.get_secret_value()
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(
        token.strip().encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning("Rejected request with missing or invalid token", scheme=scheme or None)
        raise HTTPException(
            status_code=401,
            detail="unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_source_client(
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> WooCommerceClient:
    """Upstream client; raises ConfigurationError when credentials are missing"""
    return WooCommerceClient(settings.woocommerce, http_client=http_client)


def get_ledger(
    settings: Settings = Depends(get_settings),
    client: WooCommerceClient = Depends(get_source_client),
) -> OrderLedger:
    flattener = RowFlattener(settings.accounting.payment_amount_mode)
    return OrderLedger(
        client,
        flattener,
        refunds_concurrency=settings.accounting.refunds_concurrency,
    )


def get_aggregator(
    settings: Settings = Depends(get_settings),
    ledger: OrderLedger = Depends(get_ledger),
) -> MonthlyAggregator:
    return MonthlyAggregator(ledger, settings.accounting.refund_scope)
