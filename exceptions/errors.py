"""
Custom exception classes for the application.

Every error carries a stable code, an HTTP status and a details dict so
routes can turn it into the standard error response.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "INVENTORY_ITEM_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DuplicateError(ConflictError):
    """Duplicate resource (409)."""

    def __init__(
        self,
        resource: str,
        field: str,
        value: str
    ):
        super().__init__(
            code=f"{resource.upper()}_{field.upper()}_EXISTS",
            message=f"{resource} with this {field} already exists",
            details={field: value}
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# INVENTORY ERRORS
# ===================

class InventoryItemNotFoundError(NotFoundError):
    """Inventory item not found."""

    def __init__(self, item_id: str):
        super().__init__(
            resource="Inventory item",
            identifier=item_id,
            code="INVENTORY_ITEM_NOT_FOUND"
        )


class ProductIdExistsError(DuplicateError):
    """Another live inventory item already holds this product_id."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Inventory item",
            field="product_id",
            value=product_id
        )


class NegativeQuantityError(ValidationError):
    """Write would leave an inventory item with a negative quantity."""

    def __init__(self, item_id: Optional[str], quantity: int):
        super().__init__(
            code="NEGATIVE_QUANTITY",
            message="Quantity cannot go below zero",
            details={"item_id": item_id, "quantity": quantity}
        )


# ===================
# IMPORT ERRORS
# ===================

class CSVParseError(ValidationError):
    """Import source could not be parsed into rows."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CSV_PARSE_ERROR",
            message=message,
            details=details
        )


class CSVSourceFetchError(ExternalServiceError):
    """Remote CSV source could not be downloaded."""

    def __init__(self, url: str, message: str):
        super().__init__(
            service="csv_source",
            message=message,
            details={"url": url}
        )


class ImportSessionNotFoundError(NotFoundError):
    """Import session not found."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Import session",
            identifier=session_id,
            code="IMPORT_SESSION_NOT_FOUND"
        )


class InvalidSessionTransitionError(ConflictError):
    """Import session cannot move to the requested state."""

    def __init__(self, session_id: str, current_status: str, operation: str):
        super().__init__(
            code="INVALID_SESSION_TRANSITION",
            message=f"Cannot {operation} an import session in status {current_status}",
            details={
                "session_id": session_id,
                "current_status": current_status,
                "operation": operation,
            }
        )


class InvalidResolutionError(ValidationError):
    """Conflict resolution does not fit the conflict it targets."""

    def __init__(self, row_index: int, reason: str):
        super().__init__(
            code="INVALID_RESOLUTION",
            message=f"Invalid resolution for row {row_index}: {reason}",
            details={"row_index": row_index, "reason": reason}
        )


# ===================
# SKU ERROR ERRORS
# ===================

class SkuErrorNotFoundError(NotFoundError):
    """SKU error record not found."""

    def __init__(self, error_id: str):
        super().__init__(
            resource="SKU error",
            identifier=error_id,
            code="SKU_ERROR_NOT_FOUND"
        )


class SkuErrorAlreadyResolvedError(ConflictError):
    """SKU error was already applied to inventory."""

    def __init__(self, error_id: str, status: str):
        super().__init__(
            code="SKU_ERROR_ALREADY_RESOLVED",
            message=f"SKU error {error_id} is {status}, not PENDING",
            details={"error_id": error_id, "status": status}
        )
