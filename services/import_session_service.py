"""
Import session service: persistence for reconciliation runs and their
conflict records.

Sessions keep a durable JSON snapshot of every row outcome so conflicts can
be resolved long after the parsing pass finished.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client
from models.reconciliation import (
    CommitResult,
    ConflictedRow,
    ConflictRecordResponse,
    ConflictResolution,
    ConflictStatus,
    ImportSessionResponse,
    ImportSessionStatus,
    ImportSnapshot,
    ImportSource,
    ImportSummary,
    ResolutionAction,
)
from exceptions import ImportSessionNotFoundError, DatabaseError

logger = structlog.get_logger(__name__)

# Listing columns; the snapshot can be large
LIST_COLUMNS = "id, source, source_name, status, summary, commit_result, error_message, created_at, updated_at"


class ImportSessionService:
    """
    Import session and conflict record persistence.

    Tables: ``import_sessions``, ``import_conflicts``.
    """

    def __init__(self, client=None):
        self.db = client or get_supabase_client()
        self.table = "import_sessions"
        self.conflicts_table = "import_conflicts"

    # ===================
    # SESSIONS
    # ===================

    def create(self, source: ImportSource, source_name: Optional[str] = None) -> ImportSessionResponse:
        """Open a new session in PARSING state."""
        insert_data = {
            "source": source.value,
            "source_name": source_name,
            "status": ImportSessionStatus.PARSING.value,
            "summary": ImportSummary().model_dump(),
            "resolutions": [],
        }

        try:
            result = self.db.table(self.table).insert(insert_data).execute()
        except Exception as e:
            logger.error("create_import_session_failed", source=source.value, error=str(e))
            raise DatabaseError("insert", str(e))

        session = ImportSessionResponse(**result.data[0])
        logger.info("import_session_created", session_id=session.id, source=source.value)
        return session

    def get_by_id(self, session_id: str) -> ImportSessionResponse:
        """
        Get a session with its snapshot.

        Raises:
            ImportSessionNotFoundError: If session doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", session_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_import_session_failed", session_id=session_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ImportSessionNotFoundError(session_id)

        return ImportSessionResponse(**result.data[0])

    def list_recent(self, limit: int = 50) -> list[ImportSessionResponse]:
        """Most recent sessions first, without snapshots."""
        try:
            result = (
                self.db.table(self.table)
                .select(LIST_COLUMNS)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error("list_import_sessions_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [ImportSessionResponse(**row) for row in result.data]

    def update_status(
        self,
        session_id: str,
        status: ImportSessionStatus,
        error_message: Optional[str] = None
    ) -> ImportSessionResponse:
        """Move a session to a new status."""
        fields = {"status": status.value}
        if error_message is not None:
            fields["error_message"] = error_message[:2000]
        return self._update(session_id, fields)

    def save_snapshot(
        self,
        session_id: str,
        summary: ImportSummary,
        snapshot: ImportSnapshot,
        status: ImportSessionStatus = ImportSessionStatus.READY_FOR_REVIEW
    ) -> ImportSessionResponse:
        """Persist parsing results and move the session on."""
        return self._update(session_id, {
            "summary": summary.model_dump(),
            "snapshot": snapshot.model_dump(mode="json"),
            "status": status.value,
        })

    def save_resolutions(
        self,
        session_id: str,
        resolutions: list[ConflictResolution],
        status: ImportSessionStatus = ImportSessionStatus.RESOLVING
    ) -> ImportSessionResponse:
        return self._update(session_id, {
            "resolutions": [r.model_dump(mode="json") for r in resolutions],
            "status": status.value,
        })

    def save_commit_result(
        self,
        session_id: str,
        result: CommitResult,
        status: ImportSessionStatus = ImportSessionStatus.COMMITTED
    ) -> ImportSessionResponse:
        return self._update(session_id, {
            "commit_result": result.model_dump(),
            "status": status.value,
        })

    def _update(self, session_id: str, fields: dict) -> ImportSessionResponse:
        fields["updated_at"] = datetime.utcnow().isoformat()

        try:
            result = (
                self.db.table(self.table)
                .update(fields)
                .eq("id", session_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_import_session_failed", session_id=session_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise ImportSessionNotFoundError(session_id)

        logger.debug(
            "import_session_updated",
            session_id=session_id,
            fields=[k for k in fields if k != "updated_at"]
        )
        return ImportSessionResponse(**result.data[0])

    # ===================
    # CONFLICT RECORDS
    # ===================

    def create_conflict_records(self, session_id: str, conflicts: list[ConflictedRow]) -> int:
        """Persist one PENDING record per conflicted row."""
        if not conflicts:
            return 0

        insert_data = [
            {
                "session_id": session_id,
                "row_index": c.row.row_index,
                "key": c.key,
                "conflict_type": c.conflict_type.value,
                "candidates": [cand.model_dump(mode="json") for cand in c.candidates],
                "proposed_update": c.proposed_update,
                "status": ConflictStatus.PENDING.value,
            }
            for c in conflicts
        ]

        try:
            self.db.table(self.conflicts_table).insert(insert_data).execute()
        except Exception as e:
            logger.error("create_conflict_records_failed", session_id=session_id, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info("conflict_records_created", session_id=session_id, count=len(insert_data))
        return len(insert_data)

    def resolve_conflict_record(
        self,
        session_id: str,
        row_index: int,
        action: ResolutionAction
    ) -> None:
        try:
            (
                self.db.table(self.conflicts_table)
                .update({
                    "status": ConflictStatus.RESOLVED.value,
                    "resolution": action.value,
                    "resolved_at": datetime.utcnow().isoformat(),
                })
                .eq("session_id", session_id)
                .eq("row_index", row_index)
                .execute()
            )
        except Exception as e:
            logger.error(
                "resolve_conflict_record_failed",
                session_id=session_id,
                row_index=row_index,
                error=str(e)
            )
            raise DatabaseError("update", str(e))

    def get_conflicts(self, session_id: str) -> list[ConflictRecordResponse]:
        try:
            result = (
                self.db.table(self.conflicts_table)
                .select("*")
                .eq("session_id", session_id)
                .order("row_index")
                .execute()
            )
        except Exception as e:
            logger.error("get_conflicts_failed", session_id=session_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [ConflictRecordResponse(**row) for row in result.data]


# Singleton instance for convenience
_import_session_service: Optional[ImportSessionService] = None


def get_import_session_service() -> ImportSessionService:
    """Get or create ImportSessionService instance."""
    global _import_session_service
    if _import_session_service is None:
        _import_session_service = ImportSessionService()
    return _import_session_service
