"""
Inventory API routes.

Read items, adjust quantities and delete. Reconciliation writes go through
the import routes.
"""

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from models.inventory import (
    InventoryItemResponse,
    InventoryListResponse,
    QuantityAdjustment,
    QuantityAdjustmentResponse,
)
from services.inventory_service import get_inventory_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("", response_model=InventoryListResponse)
async def list_inventory(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=500, description="Items per page"),
    sku: Optional[str] = Query(None, description="Filter by SKU")
):
    """
    List inventory items, ordered by SKU.
    """
    try:
        service = get_inventory_service()

        items, total = service.get_page(page=page, page_size=page_size, sku=sku)

        return InventoryListResponse.create(
            data=items,
            total=total,
            page=page,
            page_size=page_size
        )

    except Exception as e:
        return handle_error(e)


@router.get("/{item_id}", response_model=InventoryItemResponse)
async def get_inventory_item(item_id: str):
    """
    Get a single inventory item by ID.

    Raises:
        404: Item not found
    """
    try:
        service = get_inventory_service()
        return service.get_by_id(item_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{item_id}/adjust", response_model=QuantityAdjustmentResponse)
async def adjust_inventory_quantity(item_id: str, data: QuantityAdjustment):
    """
    Add or remove units.

    An item whose quantity reaches zero is deleted.

    Raises:
        404: Item not found
        422: Adjustment would make quantity negative
    """
    try:
        service = get_inventory_service()
        item = service.adjust_quantity(item_id, data.delta)
        return QuantityAdjustmentResponse(item=item, deleted=item is None)

    except Exception as e:
        return handle_error(e)


@router.delete("/{item_id}", status_code=204)
async def delete_inventory_item(item_id: str):
    """
    Delete an inventory item.

    Raises:
        404: Item not found
    """
    try:
        service = get_inventory_service()
        service.get_by_id(item_id)
        service.delete(item_id)
        return None  # 204 No Content

    except Exception as e:
        return handle_error(e)
