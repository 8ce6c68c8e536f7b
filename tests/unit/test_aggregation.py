"""
Unit Tests - Monthly Aggregation
"""
from collections import defaultdict
from decimal import Decimal

import pytest

from woo_accounting.aggregation.monthly import summarize
from woo_accounting.aggregation.window import YearMonth
from woo_accounting.config.settings import PaymentAmountMode, RefundScope
from woo_accounting.errors import InvalidQueryError, UpstreamFetchError
from tests.helpers import build_aggregator, make_order, make_refund


def bucket_for(buckets, key):
    return next(b for b in buckets if b.month.key == key)


class TestMonthlyAggregator:
    """Tests for MonthlyAggregator"""

    @pytest.mark.asyncio
    async def test_single_order_with_refund(self, fake_wc, wc_client):
        """One 100.00 order in March refunded 30.00 nets 70.00"""
        fake_wc.orders = [make_order(1, total="100.00", date_created="2025-03-05T10:00:00")]
        fake_wc.refunds = {1: [make_refund(7, amount="30.00", date_created="2025-03-10T09:00:00")]}

        buckets = await build_aggregator(wc_client).aggregate(2025, None, ["completed"])

        march = bucket_for(buckets, "2025-03")
        assert march.orders_count == 1
        assert march.gross_sales == Decimal("100.00")
        assert march.refunds_count == 1
        assert march.refunds_total == Decimal("30.00")
        assert march.net_revenue == Decimal("70.00")
        assert march.to_dict() == {
            "month": "2025-03",
            "orders_count": 1,
            "gross_sales": 100.0,
            "refunds_count": 1,
            "refunds_total": 30.0,
            "net_revenue": 70.0,
        }

    @pytest.mark.asyncio
    async def test_zero_fill_for_empty_year(self, fake_wc, wc_client):
        buckets = await build_aggregator(wc_client).aggregate(2030, None, ["completed"])

        assert [b.month for b in buckets] == [YearMonth(2030, m) for m in range(1, 13)]
        for bucket in buckets:
            assert bucket.orders_count == 0
            assert bucket.refunds_count == 0
            assert bucket.gross_sales == Decimal("0")
            assert bucket.net_revenue == Decimal("0")

    @pytest.mark.asyncio
    async def test_single_month_window(self, fake_wc, wc_client):
        fake_wc.orders = [
            make_order(1, date_created="2025-02-14T10:00:00"),
            make_order(2, date_created="2025-03-01T00:00:00"),
        ]

        buckets = await build_aggregator(wc_client).aggregate(2025, 2, ["completed"])

        assert [b.month.key for b in buckets] == ["2025-02"]
        assert buckets[0].orders_count == 1
        assert fake_wc.order_calls[0].url.params["before"] == "2025-03-01T00:00:00"

    @pytest.mark.asyncio
    async def test_net_identity_and_idempotence(self, fake_wc, wc_client):
        fake_wc.orders = [
            make_order(i, total=f"{10 + i}.{i:02d}", date_created=f"2025-{(i % 6) + 1:02d}-11T10:00:00")
            for i in range(1, 30)
        ]
        fake_wc.refunds = {
            i: [make_refund(100 + i, amount=f"{i}.15", date_created=f"2025-{(i % 6) + 2:02d}-01T10:00:00")]
            for i in range(1, 30, 3)
        }
        aggregator = build_aggregator(wc_client)

        first = await aggregator.aggregate(2025, None, ["completed"])
        second = await aggregator.aggregate(2025, None, ["completed"])

        assert first == second
        for bucket in first:
            assert bucket.net_revenue == (bucket.gross_sales - bucket.refunds_total).quantize(Decimal("0.01"))

    @pytest.mark.asyncio
    async def test_rounding_happens_once(self, fake_wc, wc_client):
        fake_wc.orders = [
            make_order(1, total="33.333"),
            make_order(2, total="33.333"),
            make_order(3, total="33.334"),
        ]
        fake_wc.refunds = {1: [], 2: [], 3: []}

        buckets = await build_aggregator(wc_client).aggregate(2025, 3, ["completed"])

        assert buckets[0].gross_sales == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_refund_sign_normalized(self, fake_wc, wc_client):
        fake_wc.orders = [make_order(1), make_order(2)]
        fake_wc.refunds = {
            1: [make_refund(7, amount="12.50")],
            2: [make_refund(8, amount="-12.50")],
        }

        buckets = await build_aggregator(wc_client).aggregate(2025, 3, ["completed"])

        assert buckets[0].refunds_count == 2
        assert buckets[0].refunds_total == Decimal("25.00")
        assert buckets[0].net_revenue == Decimal("175.00")

    @pytest.mark.asyncio
    async def test_refund_bucketed_by_refund_date(self, fake_wc, wc_client):
        fake_wc.orders = [make_order(1, date_created="2025-03-28T10:00:00")]
        fake_wc.refunds = {1: [make_refund(7, amount="40.00", date_created="2025-04-02T10:00:00")]}

        buckets = await build_aggregator(wc_client).aggregate(2025, None, ["completed"])

        assert bucket_for(buckets, "2025-03").gross_sales == Decimal("100.00")
        assert bucket_for(buckets, "2025-03").refunds_count == 0
        assert bucket_for(buckets, "2025-04").refunds_total == Decimal("40.00")
        assert bucket_for(buckets, "2025-04").net_revenue == Decimal("-40.00")

    @pytest.mark.asyncio
    async def test_refund_outside_window_ignored(self, fake_wc, wc_client):
        fake_wc.orders = [make_order(1, date_created="2025-12-30T10:00:00")]
        fake_wc.refunds = {1: [make_refund(7, date_created="2026-01-03T10:00:00")]}

        buckets = await build_aggregator(wc_client).aggregate(2025, None, ["completed"])

        assert sum(b.refunds_count for b in buckets) == 0
        assert bucket_for(buckets, "2025-12").orders_count == 1

    @pytest.mark.asyncio
    async def test_statuses_processed_independently(self, fake_wc, wc_client):
        fake_wc.orders = [
            make_order(1, status="completed", total="50.00"),
            make_order(2, status="processing", total="20.00"),
            make_order(3, status="cancelled", total="99.00"),
        ]

        buckets = await build_aggregator(wc_client).aggregate(2025, 3, "completed,processing")

        assert buckets[0].orders_count == 2
        assert buckets[0].gross_sales == Decimal("70.00")
        assert [r.url.params["status"] for r in fake_wc.order_calls] == ["completed", "processing"]

    @pytest.mark.asyncio
    async def test_overlapping_statuses_double_count(self, fake_wc, wc_client):
        fake_wc.orders = [make_order(1, total="10.00")]
        fake_wc.refunds = {1: []}

        buckets = await build_aggregator(wc_client).aggregate(2025, 3, ["completed", "any"])

        assert buckets[0].orders_count == 2
        assert buckets[0].gross_sales == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_preview_caps_orders_and_lookups(self, fake_wc, wc_client):
        fake_wc.orders = [
            make_order(i, date_created=f"2025-03-{i:02d}T10:00:00") for i in range(1, 21)
        ]

        buckets = await build_aggregator(wc_client).aggregate(2025, None, ["completed"], preview=5)

        assert sum(b.orders_count for b in buckets) == 5
        assert len(fake_wc.refund_calls) <= 5

    @pytest.mark.asyncio
    async def test_empty_embedded_refunds_skip_lookup(self, fake_wc, wc_client):
        fake_wc.orders = [
            make_order(1, refunds=[]),
            make_order(2, refunds=[{"id": 9, "reason": "", "total": "-5.00"}]),
            make_order(3),
        ]
        fake_wc.refunds = {2: [make_refund(9, amount="5.00")]}

        buckets = await build_aggregator(wc_client).aggregate(2025, 3, ["completed"])

        assert fake_wc.refund_calls_for(1) == 0
        assert fake_wc.refund_calls_for(2) == 1
        assert fake_wc.refund_calls_for(3) == 1
        assert buckets[0].refunds_total == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, fake_wc, wc_client):
        fake_wc.refund_delay = 0.005
        fake_wc.orders = [make_order(i) for i in range(1, 31)]
        fake_wc.refunds = {i: [make_refund(100 + i, amount="1.00")] for i in range(1, 31)}

        buckets = await build_aggregator(wc_client).aggregate(
            2025, 3, ["completed"], refunds_concurrency=3
        )

        assert len(fake_wc.refund_calls) == 30
        assert 1 <= fake_wc.max_in_flight <= 3
        assert buckets[0].refunds_total == Decimal("30.00")

    @pytest.mark.asyncio
    async def test_failed_refund_lookup_counts_as_none(self, fake_wc, wc_client, wc_settings):
        fake_wc.orders = [make_order(1), make_order(2)]
        fake_wc.refunds = {1: [make_refund(7, amount="10.00")], 2: [make_refund(8, amount="20.00")]}
        fake_wc.refund_errors = {2}

        buckets = await build_aggregator(wc_client).aggregate(2025, 3, ["completed"])

        assert buckets[0].orders_count == 2
        assert buckets[0].refunds_count == 1
        assert buckets[0].refunds_total == Decimal("10.00")
        assert fake_wc.refund_calls_for(2) == wc_settings.refund_retry_attempts

    @pytest.mark.asyncio
    async def test_timed_out_refund_lookup_counts_as_none(self, fake_wc, wc_client, wc_settings):
        """The order is still counted, only its refunds are missing"""
        fake_wc.orders = [make_order(1, total="40.00"), make_order(2, total="60.00")]
        fake_wc.refunds = {1: [make_refund(7, amount="10.00")], 2: [make_refund(8, amount="20.00")]}
        fake_wc.refund_timeouts = {2}

        buckets = await build_aggregator(wc_client).aggregate(2025, 3, ["completed"])

        assert buckets[0].orders_count == 2
        assert buckets[0].gross_sales == Decimal("100.00")
        assert buckets[0].refunds_count == 1
        assert buckets[0].refunds_total == Decimal("10.00")
        assert buckets[0].net_revenue == Decimal("90.00")
        assert fake_wc.refund_calls_for(2) == wc_settings.refund_retry_attempts
        assert fake_wc.refund_calls_for(1) == 1

    @pytest.mark.asyncio
    async def test_failed_order_listing_aborts(self, fake_wc, wc_client):
        fake_wc.order_error_status = 500

        with pytest.raises(UpstreamFetchError):
            await build_aggregator(wc_client).aggregate(2025, None, ["completed"])

    @pytest.mark.asyncio
    async def test_input_rejected_before_upstream(self, fake_wc, wc_client):
        aggregator = build_aggregator(wc_client)

        with pytest.raises(InvalidQueryError):
            await aggregator.aggregate(2025, None, [])
        with pytest.raises(InvalidQueryError):
            await aggregator.aggregate(2025, 14, ["completed"])

        assert fake_wc.calls == []


class TestRefundScope:
    """Tests for the two refund accounting policies"""

    @pytest.fixture
    def mixed_orders(self, fake_wc):
        fake_wc.orders = [
            make_order(1, status="completed", total="100.00"),
            make_order(2, status="cancelled", total="40.00"),
        ]
        fake_wc.refunds = {
            1: [make_refund(7, amount="10.00")],
            2: [make_refund(8, amount="40.00")],
        }
        return fake_wc

    @pytest.mark.asyncio
    async def test_selected_orders_scope(self, mixed_orders, wc_client):
        aggregator = build_aggregator(wc_client, scope=RefundScope.SELECTED_ORDERS)

        buckets = await aggregator.aggregate(2025, 3, ["completed"])

        assert buckets[0].gross_sales == Decimal("100.00")
        assert buckets[0].refunds_total == Decimal("10.00")
        assert mixed_orders.refund_calls_for(2) == 0

    @pytest.mark.asyncio
    async def test_any_status_scope(self, mixed_orders, wc_client):
        aggregator = build_aggregator(wc_client, scope=RefundScope.ANY_STATUS)

        buckets = await aggregator.aggregate(2025, 3, ["completed"])

        assert buckets[0].orders_count == 1
        assert buckets[0].gross_sales == Decimal("100.00")
        assert buckets[0].refunds_count == 2
        assert buckets[0].refunds_total == Decimal("50.00")
        assert buckets[0].net_revenue == Decimal("50.00")
        assert [r.url.params["status"] for r in mixed_orders.order_calls] == ["completed", "any"]


class TestRowBucketConsistency:
    """Flat rows and buckets agree when built from the same orders"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", list(PaymentAmountMode))
    async def test_rows_sum_to_net_revenue(self, fake_wc, wc_client, mode):
        fake_wc.orders = [
            make_order(1, total="120.00", shipping_total="4.90", discount_total="-5.00",
                       date_created="2025-01-15T10:00:00"),
            make_order(2, total="80.50", date_created="2025-02-03T18:30:00"),
            make_order(3, total="15.00", date_created="2025-02-20T08:00:00"),
        ]
        fake_wc.refunds = {
            1: [make_refund(7, amount="20.00", date_created="2025-02-01T09:00:00")],
            2: [make_refund(8, amount="-0.50", date_created="2025-02-04T09:00:00")],
        }
        aggregator = build_aggregator(wc_client, mode=mode)

        buckets = await aggregator.aggregate(2025, None, ["completed"])
        rows = await aggregator.ledger.flat_rows(2025, None, ["completed"])

        per_month = defaultdict(Decimal)
        for row in rows:
            per_month[row.date[:7]] += row.amount
        for bucket in buckets:
            assert per_month[bucket.month.key] == bucket.net_revenue


class TestOrderLedger:
    """Tests for the flat row listing"""

    @pytest.mark.asyncio
    async def test_flat_rows_sorted(self, fake_wc, wc_client):
        fake_wc.orders = [
            make_order(1, date_created="2025-03-05T10:00:00"),
            make_order(2, status="processing", date_created="2025-03-02T10:00:00"),
        ]
        fake_wc.refunds = {1: [make_refund(7, date_created="2025-03-10T09:00:00")]}

        rows = await build_aggregator(wc_client).ledger.flat_rows(2025, 3, "completed,processing")

        assert [r.reference for r in rows] == ["1002", "1001", "1001-R7"]
        assert [r.amount for r in rows] == [Decimal("100.00"), Decimal("100.00"), Decimal("-30.00")]

    @pytest.mark.asyncio
    async def test_flat_rows_without_refunds(self, fake_wc, wc_client):
        fake_wc.orders = [make_order(1)]
        fake_wc.refunds = {1: [make_refund(7)]}

        rows = await build_aggregator(wc_client).ledger.flat_rows(
            2025, 3, ["completed"], include_refunds=False
        )

        assert len(rows) == 1
        assert fake_wc.refund_calls == []


class TestSummarize:
    """Tests for window totals"""

    @pytest.mark.asyncio
    async def test_totals(self, fake_wc, wc_client):
        fake_wc.orders = [
            make_order(1, total="100.00", date_created="2025-01-05T10:00:00"),
            make_order(2, total="50.25", date_created="2025-06-05T10:00:00"),
        ]
        fake_wc.refunds = {2: [make_refund(7, amount="0.25", date_created="2025-06-06T10:00:00")]}

        buckets = await build_aggregator(wc_client).aggregate(2025, None, ["completed"])

        assert summarize(buckets) == {
            "orders_count": 2,
            "gross_sales": 150.25,
            "refunds_count": 1,
            "refunds_total": 0.25,
            "net_revenue": 150.0,
        }
