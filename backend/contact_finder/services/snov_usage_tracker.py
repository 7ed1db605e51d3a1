"""
Snov.io API Usage Tracker Service

Counts provider search tasks started per day for the admin dashboard.
"""
import redis
from datetime import datetime, timezone
from typing import Dict, Optional
from contact_finder.core.config import settings


def get_redis_client():
    """Get Redis client."""
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


def get_today_date_utc() -> str:
    """Get today's date in UTC (YYYY-MM-DD format)."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class SnovUsageTracker:
    """Track Snov.io API usage per day and per operation."""

    def __init__(self, redis_client=None):
        self.redis = redis_client if redis_client is not None else get_redis_client()

    def _get_usage_key(self, operation: str, date: Optional[str] = None) -> str:
        date_str = date or get_today_date_utc()
        return f"snov:usage:{operation}:{date_str}"

    def increment_usage(self, operation: str = "domain_search", amount: int = 1) -> int:
        """
        Increment usage counter for today.
        Returns the new count.
        """
        redis_key = self._get_usage_key(operation)
        new_count = self.redis.incrby(redis_key, amount)

        # Set expiry to 48 hours (to ensure cleanup after day ends)
        self.redis.expire(redis_key, 48 * 60 * 60)

        return new_count

    def get_usage(self, operation: str = "domain_search", date: Optional[str] = None) -> int:
        """Get usage for a specific date (defaults to today)."""
        usage = self.redis.get(self._get_usage_key(operation, date))
        return int(usage) if usage else 0

    def get_daily_stats(self) -> Dict:
        """Get daily usage statistics."""
        return {
            "date": get_today_date_utc(),
            "domain_searches_today": self.get_usage("domain_search"),
            "company_searches_today": self.get_usage("company_search"),
            "email_verifications_today": self.get_usage("email_verification"),
        }


# Singleton instance
_snov_usage_tracker: Optional[SnovUsageTracker] = None


def get_snov_usage_tracker() -> SnovUsageTracker:
    """Get or create Snov.io usage tracker singleton."""
    global _snov_usage_tracker
    if _snov_usage_tracker is None:
        _snov_usage_tracker = SnovUsageTracker()
    return _snov_usage_tracker
