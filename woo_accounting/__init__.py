"""
WooCommerce Accounting Proxy

Monthly revenue and refund reporting on top of the WooCommerce REST API.
"""

__version__ = "1.0.0"
