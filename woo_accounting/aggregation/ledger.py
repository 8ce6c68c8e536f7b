"""
Order Ledger

Fetch step shared by the monthly report and the flat export: list orders
per status inside a window, look their refunds up with bounded
concurrency, and flatten everything into rows.
"""

from typing import Dict, Iterable, List, Optional, Protocol, Union

import structlog

from woo_accounting.aggregation.scheduler import map_with_concurrency_limit
from woo_accounting.aggregation.window import Window, parse_statuses, resolve_window
from woo_accounting.errors import UpstreamFetchError
from woo_accounting.ingestion.models import Order, Refund
from woo_accounting.transformation.flattener import FlatRow, RowFlattener

logger = structlog.get_logger(__name__)


class OrderSource(Protocol):
    """What the ledger needs from the upstream client"""

    async def fetch_orders(
        self, status: str, after: str, before: str, limit: Optional[int] = None
    ) -> List[Order]:
        ...

    async def list_refunds(self, order_id: int) -> List[Refund]:
        ...


class OrderLedger:
    """
    Orders and refunds of a window, as upstream models or flat rows.

    Args:
        source: Upstream client
        flattener: Row builder carrying the payment amount rule
        refunds_concurrency: Default bound on concurrent refund lookups
    """

    def __init__(
        self,
        source: OrderSource,
        flattener: RowFlattener,
        refunds_concurrency: int = 5,
    ):
        self.source = source
        self.flattener = flattener
        self.refunds_concurrency = refunds_concurrency

    async def collect_orders(
        self,
        status: str,
        window: Window,
        limit: Optional[int] = None,
    ) -> List[Order]:
        """All orders of one status created inside the window, capped at `limit`"""
        orders = await self.source.fetch_orders(status, window.after, window.before, limit=limit)
        logger.info(
            "Orders collected",
            status=status,
            after=window.after,
            before=window.before,
            count=len(orders),
            limit=limit,
        )
        return orders

    async def fetch_refunds(
        self,
        orders: Iterable[Order],
        concurrency: Optional[int] = None,
    ) -> Dict[int, List[Refund]]:
        """
        Refunds of each order, keyed by order id.

        Orders whose payload embeds an empty refund list are not looked up.
        A lookup that fails after the client's retries counts as no refunds
        and is logged as a warning.
        """
        concurrency = concurrency or self.refunds_concurrency
        refunds: Dict[int, List[Refund]] = {}
        pending: List[Order] = []

        for order in orders:
            if order.id in refunds:
                continue
            refunds[order.id] = []
            if not order.has_no_refunds:
                pending.append(order)

        async def lookup(order: Order) -> List[Refund]:
            try:
                return await self.source.list_refunds(order.id)
            except UpstreamFetchError as exc:
                logger.warning(
                    "Refund lookup failed, counting no refunds",
                    order_id=order.id,
                    upstream_status=exc.upstream_status,
                    error=exc.message,
                )
                return []

        results = await map_with_concurrency_limit(pending, concurrency, lookup)
        for order, order_refunds in zip(pending, results):
            refunds[order.id] = order_refunds

        logger.debug(
            "Refunds fetched",
            orders=len(refunds),
            lookups=len(pending),
            refunds=sum(len(r) for r in results),
            concurrency=concurrency,
        )
        return refunds

    async def flat_rows(
        self,
        year: Union[int, str],
        month: Optional[Union[int, str]],
        statuses: Union[str, Iterable[str]],
        limit: Optional[int] = None,
        include_refunds: bool = True,
        refunds_concurrency: Optional[int] = None,
    ) -> List[FlatRow]:
        """
        Flat transaction rows for the orders of the given statuses.

        Each status is fetched on its own; `limit` caps the orders per
        status. Rows are sorted by date, then reference.
        """
        window = resolve_window(year, month)
        statuses = parse_statuses(statuses)

        rows: List[FlatRow] = []
        for status in statuses:
            orders = await self.collect_orders(status, window, limit=limit)
            refunds = {}
            if include_refunds:
                refunds = await self.fetch_refunds(orders, refunds_concurrency)
            for order in orders:
                rows.extend(
                    self.flattener.flatten(
                        order,
                        refunds.get(order.id, []),
                        include_refunds=include_refunds,
                    )
                )

        rows.sort(key=lambda row: (row.date, row.reference))
        return rows
