"""
Business logic services.

Each service handles one domain area.
"""

from services.inventory_service import InventoryService, get_inventory_service
from services.import_session_service import ImportSessionService, get_import_session_service
from services.sku_error_service import SkuErrorService, get_sku_error_service
from services.csv_source_service import CSVSourceService, get_csv_source_service
from services.identity_resolver import InventoryIndex, resolve, name_similarity
from services.conflict_detector import classify
from services.row_normalizer import normalize_row, normalize_rows
from services.reconciliation_service import ReconciliationService, get_reconciliation_service
from services.bulk_upsert_service import BulkUpsertService, get_bulk_upsert_service
from services.scheduled_import_service import (
    RunCoordinator,
    ScheduledImportService,
    get_scheduled_import_service,
)

__all__ = [
    "InventoryService",
    "get_inventory_service",
    "ImportSessionService",
    "get_import_session_service",
    "SkuErrorService",
    "get_sku_error_service",
    "CSVSourceService",
    "get_csv_source_service",
    "InventoryIndex",
    "resolve",
    "name_similarity",
    "classify",
    "normalize_row",
    "normalize_rows",
    "ReconciliationService",
    "get_reconciliation_service",
    "BulkUpsertService",
    "get_bulk_upsert_service",
    "RunCoordinator",
    "ScheduledImportService",
    "get_scheduled_import_service",
]
