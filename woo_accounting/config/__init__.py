"""
WooCommerce Accounting Proxy
Configuration Module
"""
from .settings import (
    AccountingSettings,
    PaymentAmountMode,
    RefundScope,
    Settings,
    WooCommerceSettings,
    get_settings,
)

__all__ = [
    "AccountingSettings",
    "PaymentAmountMode",
    "RefundScope",
    "Settings",
    "WooCommerceSettings",
    "get_settings",
]
