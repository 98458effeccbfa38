"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.pricing import router as pricing_router
from routes.catalog import router as catalog_router
from routes.settings import router as settings_router
from routes.orders import router as orders_router
from routes.production import router as production_router
from routes.checkout import router as checkout_router

__all__ = [
    "pricing_router",
    "catalog_router",
    "settings_router",
    "orders_router",
    "production_router",
    "checkout_router",
]
