"""
Test Helpers

Payload factories and an in-memory WooCommerce API for the test suite.
"""
import asyncio
import math
from typing import Any, Dict, List, Optional, Set

import httpx

from woo_accounting.aggregation.ledger import OrderLedger
from woo_accounting.aggregation.monthly import MonthlyAggregator
from woo_accounting.config.settings import PaymentAmountMode, RefundScope
from woo_accounting.ingestion.client import WooCommerceClient
from woo_accounting.transformation.flattener import RowFlattener


def make_order(
    order_id: int,
    status: str = "completed",
    total: str = "100.00",
    date_created: str = "2025-03-05T10:00:00",
    **extra: Any,
) -> Dict[str, Any]:
    """Order payload shaped like the WooCommerce REST API"""
    order = {
        "id": order_id,
        "number": str(1000 + order_id),
        "status": status,
        "currency": "EUR",
        "date_created": date_created,
        "total": total,
        "shipping_total": "0.00",
        "discount_total": "0.00",
        "payment_method_title": "Carte bancaire",
        "billing": {"first_name": "Marie", "last_name": "Curie", "city": "Paris"},
        "shipping": {"first_name": "", "last_name": "", "city": ""},
    }
    order.update(extra)
    return order


def make_refund(
    refund_id: int,
    amount: str = "30.00",
    date_created: Optional[str] = "2025-03-10T09:00:00",
    **extra: Any,
) -> Dict[str, Any]:
    refund = {
        "id": refund_id,
        "amount": amount,
        "date_created": date_created,
        "reason": "",
        "line_items": [],
        "shipping_lines": [],
    }
    refund.update(extra)
    return refund


class FakeWooCommerce:
    """
    In-memory WooCommerce REST API served through httpx.MockTransport.

    Orders are filtered by status and `[after, before)`, returned newest
    first and paginated with the `X-WP-TotalPages` header. Refund lookups
    track how many are in flight at once.
    """

    def __init__(
        self,
        orders: Optional[List[Dict[str, Any]]] = None,
        refunds: Optional[Dict[int, List[Dict[str, Any]]]] = None,
        refund_delay: float = 0.0,
    ):
        self.orders = list(orders or [])
        self.refunds = dict(refunds or {})
        self.refund_delay = refund_delay
        self.refund_errors: Set[int] = set()
        self.refund_timeouts: Set[int] = set()
        self.order_error_status: Optional[int] = None
        self.calls: List[httpx.Request] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def order_calls(self) -> List[httpx.Request]:
        return [r for r in self.calls if r.url.path.endswith("/orders")]

    @property
    def refund_calls(self) -> List[httpx.Request]:
        return [r for r in self.calls if r.url.path.endswith("/refunds")]

    def refund_calls_for(self, order_id: int) -> int:
        suffix = f"/orders/{order_id}/refunds"
        return sum(1 for r in self.refund_calls if r.url.path.endswith(suffix))

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path

        if path.endswith("/refunds"):
            order_id = int(path.rstrip("/").split("/")[-2])
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                await asyncio.sleep(self.refund_delay)
                if order_id in self.refund_timeouts:
                    raise httpx.ReadTimeout("refund lookup timed out", request=request)
                if order_id in self.refund_errors:
                    return httpx.Response(500, json={"code": "internal_error"})
                return httpx.Response(200, json=self.refunds.get(order_id, []))
            finally:
                self.in_flight -= 1

        if path.endswith("/orders"):
            if self.order_error_status:
                return httpx.Response(self.order_error_status, text="upstream exploded")
            params = request.url.params
            status = params["status"]
            after, before = params["after"], params["before"]
            page, per_page = int(params["page"]), int(params["per_page"])

            matching = [
                o for o in self.orders
                if (status == "any" or o["status"] == status)
                and after <= o["date_created"] < before
            ]
            matching.sort(key=lambda o: (o["date_created"], o["id"]), reverse=True)
            total_pages = max(1, math.ceil(len(matching) / per_page))
            chunk = matching[(page - 1) * per_page: page * per_page]
            return httpx.Response(
                200,
                json=chunk,
                headers={"X-WP-TotalPages": str(total_pages), "X-WP-Total": str(len(matching))},
            )

        return httpx.Response(404, json={"code": "rest_no_route"})

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def build_aggregator(
    client: WooCommerceClient,
    mode: PaymentAmountMode = PaymentAmountMode.ORDER_TOTAL,
    scope: RefundScope = RefundScope.SELECTED_ORDERS,
    refunds_concurrency: int = 5,
) -> MonthlyAggregator:
    ledger = OrderLedger(client, RowFlattener(mode), refunds_concurrency=refunds_concurrency)
    return MonthlyAggregator(ledger, scope)
