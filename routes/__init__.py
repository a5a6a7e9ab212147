"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.imports import router as imports_router
from routes.inventory import router as inventory_router
from routes.sku_errors import router as sku_errors_router

__all__ = [
    "imports_router",
    "inventory_router",
    "sku_errors_router",
]
