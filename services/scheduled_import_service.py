"""
Scheduled import: pulls every enabled CSV source and runs it through the
bulk-upsert fast path.

Only one scheduled run may be active at a time. A trigger that arrives while
a run is in progress is skipped, not queued.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional
import structlog

from models.reconciliation import (
    CommitResult,
    ImportSessionStatus,
    ImportSource,
    ScheduledRunResult,
)
from exceptions import AppError
from services.bulk_upsert_service import get_bulk_upsert_service
from services.csv_source_service import get_csv_source_service
from services.import_session_service import get_import_session_service

logger = structlog.get_logger(__name__)


class RunCoordinator:
    """
    Guards against overlapping runs.

    ``try_acquire`` is a non-blocking compare-and-swap: it succeeds for
    exactly one caller until ``release`` is called.
    """

    def __init__(self):
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def running(self) -> Iterator[bool]:
        """Yield whether this caller owns the run; release on exit if it does."""
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()


class ScheduledImportService:
    """
    Runs the scheduled pull over all enabled CSV sources.
    """

    def __init__(
        self,
        csv_source_service=None,
        bulk_upsert_service=None,
        session_service=None,
        coordinator: Optional[RunCoordinator] = None
    ):
        self.csv_sources = csv_source_service or get_csv_source_service()
        self.bulk_upsert = bulk_upsert_service or get_bulk_upsert_service()
        self.sessions = session_service or get_import_session_service()
        self.coordinator = coordinator or RunCoordinator()

    def run(self) -> ScheduledRunResult:
        """
        Run one scheduled import.

        Returns:
            ScheduledRunResult; status ``skipped`` if a run is already active
        """
        with self.coordinator.running() as acquired:
            if not acquired:
                logger.info("scheduled_import_skipped", reason="already_running")
                return ScheduledRunResult(
                    status="skipped",
                    message="Import already in progress"
                )
            return self._run_sources()

    def _run_sources(self) -> ScheduledRunResult:
        sources = self.csv_sources.list_sources()
        if not sources:
            logger.info("scheduled_import_no_sources")
            return ScheduledRunResult(status="no_sources", message="No CSV sources configured")

        source_names = ", ".join(s.name for s in sources)
        session = self.sessions.create(ImportSource.SCHEDULED, source_names[:255])

        logger.info("scheduled_import_started", session_id=session.id, sources=len(sources))

        totals = CommitResult()
        processed = 0

        try:
            for source in sources:
                try:
                    rows = self.csv_sources.fetch_rows(source.url)
                    result = self.bulk_upsert.upsert(rows)
                except AppError as e:
                    logger.error(
                        "scheduled_source_failed",
                        source=source.name,
                        url=source.url,
                        error=e.message
                    )
                    totals.errors += 1
                    totals.error_messages.append(f"{source.name}: {e.message}")
                    continue

                processed += 1
                totals.created += result.created
                totals.updated += result.updated
                totals.deleted += result.deleted
                totals.skipped += result.skipped
                totals.errors += result.errors

                logger.info(
                    "scheduled_source_processed",
                    source=source.name,
                    rows=len(rows),
                    created=result.created,
                    updated=result.updated,
                    sku_errors=result.sku_errors,
                    errors=result.errors
                )

            if processed == 0:
                message = "All CSV sources failed"
                self.sessions.update_status(
                    session.id,
                    ImportSessionStatus.FAILED,
                    error_message="; ".join(totals.error_messages) or message
                )
                status = "failed"
            else:
                self.sessions.save_commit_result(session.id, totals)
                status = "partial" if totals.errors else "success"
                message = (
                    f"Processed {processed} of {len(sources)} sources: "
                    f"{totals.created} created, {totals.updated} updated, {totals.errors} errors"
                )

        except Exception as e:
            logger.error("scheduled_import_failed", session_id=session.id, error=str(e))
            self.sessions.update_status(
                session.id,
                ImportSessionStatus.FAILED,
                error_message=str(e)
            )
            raise

        logger.info(
            "scheduled_import_completed",
            session_id=session.id,
            status=status,
            sources_processed=processed,
            created=totals.created,
            updated=totals.updated,
            errors=totals.errors
        )

        return ScheduledRunResult(
            status=status,
            message=message,
            sources_processed=processed,
            created=totals.created,
            updated=totals.updated,
            errors=totals.errors,
            session_id=session.id
        )


# Singleton instance for convenience; the coordinator is shared by every trigger
_scheduled_import_service: Optional[ScheduledImportService] = None


def get_scheduled_import_service() -> ScheduledImportService:
    """Get or create ScheduledImportService instance."""
    global _scheduled_import_service
    if _scheduled_import_service is None:
        _scheduled_import_service = ScheduledImportService()
    return _scheduled_import_service
