"""
Serving Module
"""
from .export import rows_to_csv, rows_to_frame

__all__ = [
    "rows_to_csv",
    "rows_to_frame",
]
