"""
API Routes Module
"""
from .accounting import router as accounting_router
from .health import router as health_router
from .orders import router as orders_router

__all__ = [
    "accounting_router",
    "health_router",
    "orders_router",
]
