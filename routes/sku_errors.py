"""
SKU error API routes.

Review rows parked by the bulk upsert because their productId arrived under
a different SKU.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.reconciliation import SkuErrorResponse, SkuErrorResolveRequest
from services.sku_error_service import get_sku_error_service
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

@router.get("", response_model=list[SkuErrorResponse])
async def list_sku_errors():
    """List pending SKU errors, oldest first."""
    try:
        service = get_sku_error_service()
        return service.list_pending()

    except Exception as e:
        return handle_error(e)


@router.post("/{error_id}/resolve")
async def resolve_sku_error(error_id: str, request: SkuErrorResolveRequest):
    """
    Apply a parked row under the corrected SKU.

    Raises:
        404: SKU error not found
    """
    try:
        service = get_sku_error_service()
        item = service.resolve(error_id, request.corrected_sku)
        return {
            "success": True,
            "item": item.model_dump(mode="json") if item else None,
        }

    except Exception as e:
        return handle_error(e)


@router.delete("/{error_id}", status_code=204)
async def delete_sku_error(error_id: str):
    """
    Dismiss a SKU error without touching inventory.

    Raises:
        404: SKU error not found
    """
    try:
        service = get_sku_error_service()
        service.get_by_id(error_id)
        service.delete(error_id)
        return None  # 204 No Content

    except Exception as e:
        return handle_error(e)
