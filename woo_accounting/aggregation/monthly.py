"""
Monthly Aggregator

Buckets payment and refund rows into calendar months and nets gross sales
against refunds.

Pipeline:
1. Resolve the window and pre-populate one zero bucket per month
2. For each status, fetch orders and add their payment rows
3. Fetch refunds according to the refund scope and add refund rows
4. Round once and compute net revenue
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Union

import structlog

from woo_accounting.aggregation.ledger import OrderLedger
from woo_accounting.aggregation.window import Window, YearMonth, parse_statuses, resolve_window
from woo_accounting.config.settings import RefundScope
from woo_accounting.transformation.flattener import FlatRow

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
ANY_STATUS = "any"


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class MonthBucket:
    """Accounting totals of one calendar month"""
    month: YearMonth
    orders_count: int = 0
    gross_sales: Decimal = field(default_factory=lambda: Decimal("0"))
    refunds_count: int = 0
    refunds_total: Decimal = field(default_factory=lambda: Decimal("0"))
    net_revenue: Decimal = field(default_factory=lambda: Decimal("0"))

    def add_payment(self, amount: Decimal) -> None:
        self.orders_count += 1
        self.gross_sales += amount

    def add_refund(self, amount: Decimal) -> None:
        self.refunds_count += 1
        self.refunds_total += abs(amount)

    def finalize(self) -> None:
        """Round the totals and derive net revenue"""
        self.gross_sales = round_money(self.gross_sales)
        self.refunds_total = round_money(self.refunds_total)
        self.net_revenue = round_money(self.gross_sales - self.refunds_total)

    def to_dict(self) -> dict:
        return {
            "month": self.month.key,
            "orders_count": self.orders_count,
            "gross_sales": float(self.gross_sales),
            "refunds_count": self.refunds_count,
            "refunds_total": float(self.refunds_total),
            "net_revenue": float(self.net_revenue),
        }


class MonthlyAggregator:
    """
    Monthly accounting summary over WooCommerce orders.

    Statuses are processed independently: an order returned for two
    requested statuses is counted twice.

    Refund scope:
    - `selected_orders`: refunds of the orders counted in gross sales
    - `any_status`: refunds of every order created in the window,
      whatever its status

    Example:
        aggregator = MonthlyAggregator(ledger, RefundScope.SELECTED_ORDERS)
        buckets = await aggregator.aggregate(2025, None, ["completed"])
    """

    def __init__(self, ledger: OrderLedger, refund_scope: RefundScope):
        self.ledger = ledger
        self.refund_scope = RefundScope(refund_scope)

    async def aggregate(
        self,
        year: Union[int, str],
        month: Optional[Union[int, str]],
        statuses: Union[str, Iterable[str]],
        preview: Optional[int] = None,
        refunds_concurrency: Optional[int] = None,
    ) -> List[MonthBucket]:
        """
        Build one bucket per month of the window.

        Args:
            year: Report year
            month: Single month of that year, or None for the whole year
            statuses: Order statuses to count
            preview: Cap on orders considered per status (most recent first)
            refunds_concurrency: Bound on concurrent refund lookups

        Returns:
            Buckets in chronological order, zero-filled for empty months
        """
        window = resolve_window(year, month)
        statuses = parse_statuses(statuses)
        buckets: Dict[YearMonth, MonthBucket] = {ym: MonthBucket(ym) for ym in window.months()}
        include_selected_refunds = self.refund_scope is RefundScope.SELECTED_ORDERS

        logger.info(
            "Aggregation started",
            after=window.after,
            before=window.before,
            statuses=statuses,
            refund_scope=self.refund_scope.value,
            preview=preview,
        )

        for status in statuses:
            orders = await self.ledger.collect_orders(status, window, limit=preview)
            refunds = {}
            if include_selected_refunds:
                refunds = await self.ledger.fetch_refunds(orders, refunds_concurrency)
            for order in orders:
                rows = self.ledger.flattener.flatten(
                    order,
                    refunds.get(order.id, []),
                    include_refunds=include_selected_refunds,
                )
                self._apply(buckets, rows)

        if not include_selected_refunds:
            await self._apply_window_refunds(buckets, window, preview, refunds_concurrency)

        ordered = [buckets[ym] for ym in sorted(buckets)]
        for bucket in ordered:
            bucket.finalize()

        logger.info(
            "Aggregation completed",
            months=len(ordered),
            orders=sum(b.orders_count for b in ordered),
            refunds=sum(b.refunds_count for b in ordered),
        )
        return ordered

    async def _apply_window_refunds(
        self,
        buckets: Dict[YearMonth, MonthBucket],
        window: Window,
        preview: Optional[int],
        refunds_concurrency: Optional[int],
    ) -> None:
        orders = await self.ledger.collect_orders(ANY_STATUS, window, limit=preview)
        refunds = await self.ledger.fetch_refunds(orders, refunds_concurrency)
        for order in orders:
            rows = self.ledger.flattener.flatten(order, refunds.get(order.id, []))
            self._apply(buckets, [row for row in rows if row.is_refund])

    @staticmethod
    def _apply(buckets: Dict[YearMonth, MonthBucket], rows: Iterable[FlatRow]) -> None:
        for row in rows:
            bucket = buckets.get(YearMonth.from_timestamp(row.date))
            if bucket is None:
                logger.debug(
                    "Row outside report window",
                    reference=row.reference,
                    date=row.date,
                )
                continue
            if row.is_refund:
                bucket.add_refund(row.amount)
            else:
                bucket.add_payment(row.amount)


def summarize(buckets: Iterable[MonthBucket]) -> dict:
    """Totals over finalized buckets, with the same fields as a bucket"""
    orders_count = refunds_count = 0
    gross_sales = refunds_total = Decimal("0")
    for bucket in buckets:
        orders_count += bucket.orders_count
        refunds_count += bucket.refunds_count
        gross_sales += bucket.gross_sales
        refunds_total += bucket.refunds_total

    return {
        "orders_count": orders_count,
        "gross_sales": float(round_money(gross_sales)),
        "refunds_count": refunds_count,
        "refunds_total": float(round_money(refunds_total)),
        "net_revenue": float(round_money(gross_sales - refunds_total)),
    }
