"""
Data Ingestion Module
"""
from .client import WooCommerceClient
from .models import Contact, Order, OrderPage, Refund
from .retry import RetryPolicy

__all__ = [
    "WooCommerceClient",
    "Contact",
    "Order",
    "OrderPage",
    "Refund",
    "RetryPolicy",
]
