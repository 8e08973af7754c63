"""
API v1 package initialization.
"""

from bakery_orders.api.v1.orders import router as orders_router
from bakery_orders.api.v1.quotes import router as quotes_router

__all__ = ["orders_router", "quotes_router"]
