"""
WooCommerce REST Client

Async client for the two upstream resources the accounting pipeline needs:
- paginated order listings filtered by status and creation window
- per-order refund listings

Example:
    async with WooCommerceClient(settings.woocommerce) as client:
        orders = await client.fetch_orders("completed", after, before)
        refunds = await client.list_refunds(orders[0].id)
"""

import asyncio
from typing import Any, List, Optional, Set

import httpx
import structlog
from prometheus_client import Counter, Histogram
from pydantic import TypeAdapter, ValidationError

from woo_accounting.config.settings import WooCommerceSettings
from woo_accounting.errors import ConfigurationError, UpstreamFetchError
from woo_accounting.ingestion.models import Order, OrderPage, Refund
from woo_accounting.ingestion.retry import RetryPolicy

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 100
TOTAL_PAGES_HEADER = "X-WP-TotalPages"

_orders_adapter = TypeAdapter(List[Order])
_refunds_adapter = TypeAdapter(List[Refund])


# =============================================================================
# METRICS
# =============================================================================

UPSTREAM_REQUESTS = Counter(
    "woo_accounting_upstream_requests_total",
    "WooCommerce REST calls by resource and outcome",
    ["resource", "outcome"],
)

UPSTREAM_LATENCY = Histogram(
    "woo_accounting_upstream_request_seconds",
    "Latency of WooCommerce REST calls",
    ["resource"],
)


def _resource_of(path: str) -> str:
    return "refunds" if path.endswith("/refunds") else "orders"


class WooCommerceClient:
    """
    Authenticated reader for WooCommerce orders and refunds.

    The connection settings are checked in the constructor so a missing
    base URL or credential fails before any network call.

    Args:
        config: Upstream connection settings
        http_client: Shared connection pool; a private one is created
            (and closed by `aclose`) when omitted
        order_retry: Policy for order listing calls
        refund_retry: Policy for refund listing calls
    """

    def __init__(
        self,
        config: WooCommerceSettings,
        http_client: Optional[httpx.AsyncClient] = None,
        order_retry: Optional[RetryPolicy] = None,
        refund_retry: Optional[RetryPolicy] = None,
    ):
        missing = config.missing_fields()
        if missing:
            raise ConfigurationError(
                f"WooCommerce connection is not configured, missing: {', '.join(missing)}"
            )

        self.config = config
        self.api_url = config.api_url
        self.page_size = min(config.page_size, MAX_PAGE_SIZE)
        self.order_retry = order_retry or RetryPolicy(
            max_attempts=config.order_retry_attempts,
            backoff_seconds=config.retry_backoff_seconds,
        )
        self.refund_retry = refund_retry or RetryPolicy(
            max_attempts=config.refund_retry_attempts,
            backoff_seconds=config.retry_backoff_seconds,
        )
        self._auth = httpx.BasicAuth(
            config.consumer_key.get_secret_value(),
            config.consumer_secret.get_secret_value(),
        )
        self._timeout = httpx.Timeout(config.timeout_seconds)
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=self._timeout,
            verify=config.verify_ssl,
        )

    async def __aenter__(self) -> "WooCommerceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the connection pool if this client created it"""
        if self._owns_client:
            await self._http.aclose()

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def list_orders(
        self,
        status: str,
        after: str,
        before: str,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> OrderPage:
        """
        Fetch one page of orders created in `[after, before)`.

        Orders are requested newest first.

        Returns:
            OrderPage with the orders and the upstream page count, or
            `total_pages=None` when the header is missing
        """
        per_page = min(per_page or self.page_size, MAX_PAGE_SIZE)
        params = {
            "status": status,
            "after": after,
            "before": before,
            "page": page,
            "per_page": per_page,
            "orderby": "date",
            "order": "desc",
        }
        response = await self._get("/orders", params=params, policy=self.order_retry)
        orders = self._parse(response, _orders_adapter, "orders")

        return OrderPage(
            orders=orders,
            page=page,
            total_pages=_total_pages(response),
        )

    async def fetch_orders(
        self,
        status: str,
        after: str,
        before: str,
        limit: Optional[int] = None,
    ) -> List[Order]:
        """
        Fetch every order for a status, following pagination.

        Stops once the upstream page count is reached, an empty page is
        returned, or a page brings no order that was not already seen (an
        upstream ignoring `page` without sending `X-WP-TotalPages`).
        Duplicate order ids (pages shifting while paginating) are
        dropped. With `limit`, pagination stops as soon as `limit` orders
        are collected, which keeps the most recent ones.
        """
        per_page = self.page_size if limit is None else min(self.page_size, limit)
        collected: List[Order] = []
        seen: Set[int] = set()
        page = 1

        while True:
            result = await self.list_orders(status, after, before, page=page, per_page=per_page)
            if not result.orders:
                break

            added = 0
            for order in result.orders:
                if order.id in seen:
                    continue
                seen.add(order.id)
                collected.append(order)
                added += 1
                if limit is not None and len(collected) >= limit:
                    logger.debug("Order limit reached", status=status, limit=limit, pages=page)
                    return collected

            if not added:
                logger.warning(
                    "Order page repeated already seen orders, stopping pagination",
                    status=status,
                    page=page,
                )
                break
            if result.total_pages is not None and page >= result.total_pages:
                break
            page += 1

        logger.debug("Orders fetched", status=status, count=len(collected), pages=page)
        return collected

    # =========================================================================
    # REFUNDS
    # =========================================================================

    async def list_refunds(self, order_id: int) -> List[Refund]:
        """Fetch all refunds of one order (empty list when there are none)"""
        response = await self._get(
            f"/orders/{order_id}/refunds",
            params=None,
            policy=self.refund_retry,
        )
        return self._parse(response, _refunds_adapter, "refunds")

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def _get(
        self,
        path: str,
        params: Optional[dict],
        policy: RetryPolicy,
    ) -> httpx.Response:
        url = f"{self.api_url}{path}"
        resource = _resource_of(path)
        attempt = 0

        while True:
            attempt += 1
            try:
                with UPSTREAM_LATENCY.labels(resource=resource).time():
                    response = await self._http.get(
                        url,
                        params=params,
                        auth=self._auth,
                        timeout=self._timeout,
                    )
            except httpx.TimeoutException as exc:
                UPSTREAM_REQUESTS.labels(resource=resource, outcome="timeout").inc()
                error = UpstreamFetchError(f"Timeout calling WooCommerce {path}: {exc!r}")
            except httpx.HTTPError as exc:
                UPSTREAM_REQUESTS.labels(resource=resource, outcome="network_error").inc()
                error = UpstreamFetchError(f"Network error calling WooCommerce {path}: {exc!r}")
            else:
                if response.is_success:
                    UPSTREAM_REQUESTS.labels(resource=resource, outcome="success").inc()
                    return response
                UPSTREAM_REQUESTS.labels(resource=resource, outcome="http_error").inc()
                error = UpstreamFetchError(
                    f"WooCommerce {path} returned HTTP {response.status_code}",
                    upstream_status=response.status_code,
                    body=response.text,
                )

            if not policy.should_retry(error, attempt):
                raise error

            delay = policy.delay(attempt)
            logger.warning(
                "Retrying upstream call",
                path=path,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                upstream_status=error.upstream_status,
                delay_seconds=delay,
            )
            await asyncio.sleep(delay)

    @staticmethod
    def _parse(response: httpx.Response, adapter: TypeAdapter, resource: str) -> Any:
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFetchError(
                f"WooCommerce returned a non-JSON {resource} payload",
                upstream_status=response.status_code,
                body=response.text,
            ) from exc

        try:
            return adapter.validate_python(payload)
        except ValidationError as exc:
            raise UpstreamFetchError(
                f"WooCommerce returned an unexpected {resource} payload: {exc.error_count()} error(s)",
                upstream_status=response.status_code,
                body=response.text,
            ) from exc


def _total_pages(response: httpx.Response) -> Optional[int]:
    value = response.headers.get(TOTAL_PAGES_HEADER)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
