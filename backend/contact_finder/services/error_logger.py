"""
Error Logger Service

Internal error metric for the discovery pipeline. Failures that are
deliberately swallowed (search log writes, cache writes) are recorded here
so the admin dashboard can still see them:
- Component and error type
- Domain being searched
- Timestamp
- Aggregated counts per day
"""
import redis
import json
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from contact_finder.core.config import settings

logger = logging.getLogger(__name__)

# Max errors to keep per day
MAX_ERRORS_PER_DAY = 10000

# Keep error history for 7 days
ERROR_TTL_SECONDS = 7 * 24 * 60 * 60


def get_redis_client():
    """Get Redis client."""
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


def get_today_date_utc() -> str:
    """Get today's date in UTC (YYYY-MM-DD format)."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class ErrorLogger:
    """Log and retrieve internal discovery errors."""

    def __init__(self, redis_client=None):
        self.redis = redis_client if redis_client is not None else get_redis_client()

    def _get_errors_key(self, date: Optional[str] = None) -> str:
        date_str = date or get_today_date_utc()
        return f"discovery:errors:{date_str}"

    def _get_error_counts_key(self, date: Optional[str] = None) -> str:
        date_str = date or get_today_date_utc()
        return f"discovery:error_counts:{date_str}"

    def log_error(
        self,
        component: str,
        error_type: str,
        error_message: str,
        domain: Optional[str] = None,
        extra_data: Optional[Dict] = None
    ) -> bool:
        """
        Record an error. Never raises: the metric itself must not break the
        request that is reporting the failure.
        """
        error_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "component": component,
            "error_type": error_type,
            "error_message": error_message,
            "domain": domain,
            "extra_data": extra_data or {}
        }

        errors_key = self._get_errors_key()
        counts_key = self._get_error_counts_key()

        try:
            pipe = self.redis.pipeline()
            # Newest first, trimmed to max size
            pipe.lpush(errors_key, json.dumps(error_entry))
            pipe.ltrim(errors_key, 0, MAX_ERRORS_PER_DAY - 1)
            pipe.expire(errors_key, ERROR_TTL_SECONDS)
            pipe.hincrby(counts_key, f"{component}:{error_type}", 1)
            pipe.expire(counts_key, ERROR_TTL_SECONDS)
            pipe.execute()
            return True
        except Exception as e:
            logger.warning(f"Failed to record {component} error metric: {e}")
            return False

    def get_errors(
        self,
        date: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[Dict]:
        """
        Get error logs for a date.
        Returns newest first.
        """
        raw_errors = self.redis.lrange(self._get_errors_key(date), offset, offset + limit - 1)
        return [json.loads(e) for e in raw_errors]

    def get_error_count(self, date: Optional[str] = None) -> int:
        """Get total error count for a date."""
        return self.redis.llen(self._get_errors_key(date))

    def get_error_summary(self, date: Optional[str] = None) -> Dict:
        """
        Get error summary with counts by component and type.
        """
        all_counts = self.redis.hgetall(self._get_error_counts_key(date))

        by_component = {}
        by_type = {}
        total = 0

        for key, count in all_counts.items():
            count = int(count)
            total += count

            component, _, error_type = key.partition(":")
            by_component[component] = by_component.get(component, 0) + count
            by_type[error_type] = by_type.get(error_type, 0) + count

        return {
            "date": date or get_today_date_utc(),
            "total_errors": total,
            "by_component": by_component,
            "by_type": by_type
        }


# Singleton instance
_logger: Optional[ErrorLogger] = None


def get_error_logger() -> ErrorLogger:
    """Get singleton error logger instance."""
    global _logger
    if _logger is None:
        _logger = ErrorLogger()
    return _logger
