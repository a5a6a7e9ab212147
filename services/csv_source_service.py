"""
CSV source service: the configured URLs a scheduled pull reads from, and
fetching their content over HTTP.
"""

from typing import Optional
import structlog
import requests

from config import get_supabase_client, settings
from models.reconciliation import CSVSourceResponse
from exceptions import CSVSourceFetchError, DatabaseError
from parsers.csv_parser import parse_csv_bytes

logger = structlog.get_logger(__name__)


class CSVSourceService:
    """
    CSV source registry and fetcher.

    Table: ``csv_sources``.
    """

    def __init__(self, client=None, timeout: Optional[int] = None):
        self._client = client
        self.table = "csv_sources"
        self.timeout = timeout or settings.csv_fetch_timeout_seconds

    @property
    def db(self):
        # Fetching does not need the database, so connect lazily
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def list_sources(self, enabled_only: bool = True) -> list[CSVSourceResponse]:
        """Configured sources, enabled ones only by default."""
        try:
            query = self.db.table(self.table).select("*")
            if enabled_only:
                query = query.eq("enabled", True)
            result = query.order("name").execute()
        except Exception as e:
            logger.error("list_csv_sources_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [CSVSourceResponse(**row) for row in result.data]

    def fetch(self, url: str) -> bytes:
        """
        Download a CSV file.

        Raises:
            CSVSourceFetchError: On network failure, timeout or non-2xx status
        """
        logger.info("fetching_csv_source", url=url)

        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("csv_source_fetch_failed", url=url, error=str(e))
            raise CSVSourceFetchError(url, str(e))

        logger.info("csv_source_fetched", url=url, size=len(response.content))
        return response.content

    def fetch_rows(self, url: str) -> list[dict[str, str]]:
        """Download and parse a CSV source into raw rows."""
        return parse_csv_bytes(self.fetch(url))


# Singleton instance for convenience
_csv_source_service: Optional[CSVSourceService] = None


def get_csv_source_service() -> CSVSourceService:
    """Get or create CSVSourceService instance."""
    global _csv_source_service
    if _csv_source_service is None:
        _csv_source_service = CSVSourceService()
    return _csv_source_service
