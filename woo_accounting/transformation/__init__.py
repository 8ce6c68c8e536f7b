"""
Data Transformation Module
"""
from .flattener import (
    FlatRow,
    NATURE_PAYMENT,
    NATURE_REFUND,
    RowFlattener,
    normalize_timestamp,
    status_label,
)

__all__ = [
    "FlatRow",
    "NATURE_PAYMENT",
    "NATURE_REFUND",
    "RowFlattener",
    "normalize_timestamp",
    "status_label",
]
