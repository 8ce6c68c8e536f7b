"""
Aggregation Module
"""
from .ledger import OrderLedger
from .monthly import MonthBucket, MonthlyAggregator, summarize
from .scheduler import map_with_concurrency_limit
from .window import Window, YearMonth, parse_statuses, resolve_window

__all__ = [
    "OrderLedger",
    "MonthBucket",
    "MonthlyAggregator",
    "summarize",
    "map_with_concurrency_limit",
    "Window",
    "YearMonth",
    "parse_statuses",
    "resolve_window",
]
