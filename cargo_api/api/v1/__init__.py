"""
API routers.
"""

from cargo_api.api.v1.auth import router as auth_router
from cargo_api.api.v1.orders import router as orders_router

__all__ = ["auth_router", "orders_router"]
