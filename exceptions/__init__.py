"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DuplicateError,
    ExternalServiceError,
    DatabaseError,

    # Inventory
    InventoryItemNotFoundError,
    ProductIdExistsError,
    NegativeQuantityError,

    # Imports
    CSVParseError,
    CSVSourceFetchError,
    ImportSessionNotFoundError,
    InvalidSessionTransitionError,
    InvalidResolutionError,

    # SKU errors
    SkuErrorNotFoundError,
    SkuErrorAlreadyResolvedError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateError",
    "ExternalServiceError",
    "DatabaseError",

    # Inventory
    "InventoryItemNotFoundError",
    "ProductIdExistsError",
    "NegativeQuantityError",

    # Imports
    "CSVParseError",
    "CSVSourceFetchError",
    "ImportSessionNotFoundError",
    "InvalidSessionTransitionError",
    "InvalidResolutionError",

    # SKU errors
    "SkuErrorNotFoundError",
    "SkuErrorAlreadyResolvedError",
]
