"""
Search Logger Service

Append-only record of every contact discovery attempt (cache hit or miss).
These rows feed CacheStore.stats(). A failed write never reaches the caller:
it is logged and counted in the internal error metric instead.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from contact_finder.core.exceptions import LogWriteError
from contact_finder.db.session import SessionLocal
from contact_finder.models.search_log import SearchLog
from contact_finder.services.records import SearchLogEntry

logger = logging.getLogger(__name__)


class SearchLogger:

    def __init__(
        self,
        session_factory: Callable = SessionLocal,
        error_logger=None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session_factory = session_factory
        self.error_logger = error_logger
        self._now = now

    def _insert(self, entry: SearchLogEntry) -> None:
        try:
            with self.session_factory() as db:
                db.add(SearchLog(
                    user_id=entry.user_id,
                    company_domain=entry.company_domain,
                    job_title=entry.job_title,
                    cache_hit=entry.cache_hit,
                    contacts_found=entry.contacts_found,
                    contacts_returned=entry.contacts_returned,
                    credits_used=entry.credits_used,
                    response_time_ms=entry.response_time_ms,
                    error_type=entry.error_type,
                    created_at=entry.created_at or self._now(),
                ))
                db.commit()
        except Exception as e:
            raise LogWriteError(f"Failed to write search log for {entry.company_domain}: {e}") from e

    def record(self, entry: SearchLogEntry) -> bool:
        """Persist a log entry. Returns False (never raises) if it could not be written."""
        try:
            self._insert(entry)
            return True
        except LogWriteError as e:
            logger.exception(str(e))
            if self.error_logger is not None:
                self.error_logger.log_error(
                    component="search_logger",
                    error_type=type(e.__cause__ or e).__name__,
                    error_message=str(e),
                    domain=entry.company_domain,
                )
            return False
