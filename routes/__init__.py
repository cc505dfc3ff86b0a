"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.suppliers import router as suppliers_router
from routes.orders import router as orders_router

__all__ = [
    "suppliers_router",
    "orders_router",
]
