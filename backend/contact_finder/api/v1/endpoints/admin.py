"""
Admin API Endpoints

Protected endpoints for the admin dashboard:
- Cache hit rate, savings and table statistics
- Cache cleanup and invalidation
- Scheduled cache cleanup (cron)
- Discovery error logs
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from datetime import datetime, timedelta, timezone
from typing import List, Optional
import logging

from contact_finder.models.user import User
from contact_finder.api.dependencies import require_admin, verify_cron_secret, get_discovery_service
from contact_finder.core.exceptions import InvalidDomainError
from contact_finder.schemas.contact import CacheActionRequest
from contact_finder.services.contact_discovery import ContactDiscoveryService
from contact_finder.services.error_logger import get_error_logger
from contact_finder.services.records import CacheStats, CacheTableStats
from contact_finder.services.snov_usage_tracker import get_snov_usage_tracker

logger = logging.getLogger(__name__)

router = APIRouter()

# Estimated provider cost of one credit, in USD
CREDIT_COST_USD = 0.10

LOW_HIT_RATE = 30
HIGH_HIT_RATE = 70
EXPIRED_ENTRIES_THRESHOLD = 100
FAST_RESPONSE_MS = 500
SLOW_RESPONSE_MS = 2000


def generate_recommendations(stats: CacheStats, tables: CacheTableStats) -> List[str]:
    recommendations = []

    if stats.hit_rate < LOW_HIT_RATE:
        recommendations.append("Cache hit rate is low. Consider increasing cache TTL or analyzing search patterns.")
    if stats.hit_rate >= HIGH_HIT_RATE:
        recommendations.append("Excellent cache hit rate! The caching system is working effectively.")

    total_expired = tables.expired_company_caches + tables.expired_contact_caches
    if total_expired > EXPIRED_ENTRIES_THRESHOLD:
        recommendations.append(f"{total_expired} expired cache entries detected. Run cleanup to free up space.")

    if stats.total_searches == 0:
        recommendations.append("No searches in this period. Cache statistics may not be representative.")
    elif stats.avg_response_time_ms < FAST_RESPONSE_MS:
        recommendations.append("Response times are excellent. Cache is performing optimally.")

    if stats.avg_response_time_ms > SLOW_RESPONSE_MS:
        recommendations.append("Response times are slow. Consider optimizing queries or database indexes.")

    return recommendations


# ============================================
# CACHE ENDPOINTS
# ============================================

@router.get("/cache-stats")
async def get_cache_stats(
    admin: User = Depends(require_admin),
    service: ContactDiscoveryService = Depends(get_discovery_service),
    days: int = Query(7, ge=1, le=365)
):
    """Cache hit rate, credit savings and table sizes over the last `days` days."""
    stats = service.get_cache_stats(days)
    tables = service.get_cache_table_stats()
    now = datetime.now(timezone.utc)

    return {
        "period": {
            "days_back": days,
            "from_date": (now - timedelta(days=days)).isoformat(),
            "to_date": now.isoformat(),
        },
        "performance": {
            "total_searches": stats.total_searches,
            "cache_hits": stats.cache_hits,
            "cache_misses": stats.cache_misses,
            "hit_rate_percentage": stats.hit_rate,
            "avg_response_time_ms": stats.avg_response_time_ms,
        },
        "savings": {
            "total_credits_saved": stats.total_credits_saved,
            "estimated_cost_saved": round(stats.total_credits_saved * CREDIT_COST_USD, 2),
        },
        "cache_tables": {
            "company_research": {
                "total_entries": tables.company_cache_count,
                "expired_entries": tables.expired_company_caches,
                "active_entries": tables.company_cache_count - tables.expired_company_caches,
            },
            "contact_search_results": {
                "total_entries": tables.contact_cache_count,
                "expired_entries": tables.expired_contact_caches,
                "active_entries": tables.contact_cache_count - tables.expired_contact_caches,
            },
            "search_logs": {
                "total_entries": tables.search_logs_count,
            },
        },
        "recommendations": generate_recommendations(stats, tables),
    }


@router.post("/cache")
async def manage_cache(
    payload: CacheActionRequest,
    admin: User = Depends(require_admin),
    service: ContactDiscoveryService = Depends(get_discovery_service)
):
    """Run a cache maintenance action."""
    logger.info(f"Admin {admin.email} running cache action: {payload.action}")

    if payload.action == "cleanup":
        result = service.cleanup()
        return {
            "success": True,
            "action": "cleanup",
            "result": dict(
                result,
                total_deleted=result["company_cache_deleted"] + result["contact_cache_deleted"],
            ),
        }

    if not payload.domain:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing domain parameter")
    try:
        domain = service.validate_domain(payload.domain)
    except InvalidDomainError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    response = {"success": True, "action": payload.action, "domain": domain}
    if payload.action == "invalidate":
        company_deleted, contact_deleted = service.invalidate(domain)
        response["deleted"] = {"company": company_deleted, "contacts": contact_deleted}
    elif payload.action == "invalidate_company":
        response["deleted"] = {"company": service.cache_store.invalidate_company(domain)}
    else:
        response["deleted"] = {"contacts": service.cache_store.invalidate_contacts(domain)}
    return response


@router.get("/cache-cleanup")
async def scheduled_cache_cleanup(
    _: None = Depends(verify_cron_secret),
    service: ContactDiscoveryService = Depends(get_discovery_service)
):
    """Scheduler entry point: remove expired cache entries and old search logs."""
    started = datetime.now(timezone.utc)
    result = service.cleanup()
    duration_ms = int((datetime.now(timezone.utc) - started).total_seconds() * 1000)

    logger.info(f"Scheduled cache cleanup finished in {duration_ms}ms: {result}")
    return {
        "success": True,
        "result": result,
        "duration_ms": duration_ms,
        "timestamp": started.isoformat(),
    }


# ============================================
# USAGE & ERROR LOG ENDPOINTS
# ============================================

@router.get("/snov-usage")
async def get_snov_usage(
    admin: User = Depends(require_admin)
):
    """Provider tasks started today, by operation."""
    return get_snov_usage_tracker().get_daily_stats()


@router.get("/errors")
async def get_error_logs(
    admin: User = Depends(require_admin),
    date: Optional[str] = Query(None, description="Date in YYYY-MM-DD format"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0)
):
    """Get discovery error logs."""
    error_logger = get_error_logger()

    errors = error_logger.get_errors(date=date, limit=limit, offset=offset)
    summary = error_logger.get_error_summary(date=date)
    total_count = error_logger.get_error_count(date=date)

    return {
        "errors": errors,
        "summary": summary,
        "total": total_count,
        "limit": limit,
        "offset": offset
    }
