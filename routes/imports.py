"""
Import API routes.

Upload or fetch a source, review its conflicts, resolve and commit. Also
exposes the review-free bulk upsert and a manual trigger for the scheduled
pull.
"""

from pathlib import PurePath
from urllib.parse import urlparse

from fastapi import APIRouter, File, Query, UploadFile
from fastapi.responses import JSONResponse
import structlog

from config import settings
from models.reconciliation import (
    BulkUpsertRequest,
    BulkUpsertResult,
    CommitResult,
    ConflictRecordResponse,
    ImportSessionResponse,
    ResolveRequest,
    ScheduledRunResult,
    UrlImportRequest,
)
from services.reconciliation_service import get_reconciliation_service
from services.bulk_upsert_service import get_bulk_upsert_service
from services.scheduled_import_service import get_scheduled_import_service
from exceptions import AppError, ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = {".csv", ".txt", ".xlsx", ".xls"}


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


def _session_summary(session: ImportSessionResponse) -> dict:
    """Session without its (large) snapshot."""
    return session.model_dump(mode="json", exclude={"snapshot"})


# ===================
# SOURCES
# ===================

@router.post("/upload")
async def upload_import(file: UploadFile = File(...)):
    """
    Upload a CSV or Excel file and reconcile it against inventory.

    Nothing is written to inventory until the session is committed.

    Raises:
        422: Unsupported file type, empty or oversized file, unparseable content
    """
    logger.info(
        "import_upload_started",
        filename=file.filename,
        content_type=file.content_type
    )

    try:
        suffix = PurePath(file.filename or "").suffix.lower()
        if suffix not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=f"Unsupported file type: {suffix or 'none'}",
                code="UNSUPPORTED_FILE_TYPE",
                details={"allowed": sorted(ALLOWED_EXTENSIONS)}
            )

        content = await file.read()
        if not content:
            raise ValidationError("Empty file uploaded", code="EMPTY_FILE")
        if len(content) > settings.max_upload_bytes:
            raise ValidationError(
                message="File too large",
                code="FILE_TOO_LARGE",
                details={"max_bytes": settings.max_upload_bytes}
            )

        service = get_reconciliation_service()
        session = service.start_import_from_file(file.filename, content)
        return _session_summary(session)

    except Exception as e:
        return handle_error(e)


@router.post("/from-url")
async def import_from_url(request: UrlImportRequest):
    """
    Fetch a CSV over HTTP(S) and reconcile it against inventory.

    Raises:
        422: URL is not http(s)
        503: Source could not be fetched
    """
    try:
        parsed = urlparse(request.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(
                message="Only http and https URLs are supported",
                code="INVALID_URL",
                details={"url": request.url}
            )

        service = get_reconciliation_service()
        session = service.start_import_from_url(request.url)
        return _session_summary(session)

    except Exception as e:
        return handle_error(e)


@router.post("/bulk-upsert", response_model=BulkUpsertResult)
async def bulk_upsert(request: BulkUpsertRequest):
    """
    Upsert raw rows directly, without a review step.

    SKU mismatches on known productIds are parked as SKU errors.
    """
    try:
        service = get_bulk_upsert_service()
        return service.upsert(request.items)

    except Exception as e:
        return handle_error(e)


@router.post("/scheduled/run", response_model=ScheduledRunResult)
async def run_scheduled_import():
    """
    Trigger the scheduled pull now.

    Returns status ``skipped`` if a run is already in progress.
    """
    try:
        service = get_scheduled_import_service()
        return service.run()

    except Exception as e:
        return handle_error(e)


# ===================
# SESSIONS
# ===================

@router.get("")
async def list_imports(
    limit: int = Query(50, ge=1, le=200, description="Max sessions to return")
):
    """List recent import sessions, newest first."""
    try:
        service = get_reconciliation_service()
        sessions = service.list_sessions(limit=limit)
        return {
            "data": [_session_summary(s) for s in sessions],
            "total": len(sessions),
        }

    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}", response_model=ImportSessionResponse)
async def get_import(session_id: str):
    """
    Get an import session including its per-row snapshot.

    Raises:
        404: Session not found
    """
    try:
        service = get_reconciliation_service()
        return service.get_session(session_id)

    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}/conflicts", response_model=list[ConflictRecordResponse])
async def get_import_conflicts(session_id: str):
    """
    Get the conflict records of a session.

    Raises:
        404: Session not found
    """
    try:
        service = get_reconciliation_service()
        return service.get_conflicts(session_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/resolve")
async def resolve_import(session_id: str, request: ResolveRequest):
    """
    Record resolutions for conflicted rows.

    Raises:
        404: Session not found
        409: Session is not awaiting review
        422: Resolution does not fit its conflict
    """
    try:
        service = get_reconciliation_service()
        session = service.resolve(session_id, request.resolutions)
        return _session_summary(session)

    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/commit", response_model=CommitResult)
async def commit_import(session_id: str):
    """
    Apply the session to inventory.

    Raises:
        404: Session not found
        409: Session already committed or failed
    """
    try:
        service = get_reconciliation_service()
        return service.commit(session_id)

    except Exception as e:
        return handle_error(e)
