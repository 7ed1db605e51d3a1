"""
Cache Store Service

Durable two-tier cache for contact discovery:
- Company research, keyed by domain
- Contact search results, keyed by (domain, job title, job description hash)

Every entry lives CACHE_TTL_DAYS from its last write. Expired rows are
misses on read and are removed in bulk by cleanup_expired(). Hit counters
are incremented with a single UPDATE so concurrent readers never lose
increments.
"""
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Sequence, Tuple

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from contact_finder.core.config import settings
from contact_finder.core.exceptions import CacheWriteError
from contact_finder.db.session import SessionLocal
from contact_finder.models.company_research_cache import CompanyResearchCache
from contact_finder.models.contact_search_cache import ContactSearchCache
from contact_finder.models.search_log import SearchLog
from contact_finder.services import relevance_scorer
from contact_finder.services.records import (
    CacheStats,
    CacheTableStats,
    CompanyResearch,
    Contact,
    ContactSearchEntry,
)

logger = logging.getLogger(__name__)

NO_DESCRIPTION_KEY = "none"

COMPANY_RESEARCH_FIELDS = (
    "company_name",
    "verified_domain",
    "company_size_category",
    "industry",
    "departments",
    "office_locations",
    "team_structure",
    "linkedin_url",
    "company_description",
    "founded_year",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_job_description(job_description: Optional[str]) -> Optional[str]:
    """sha256 of the stripped description, None when there is no description."""
    if job_description is None or not job_description.strip():
        return None
    return hashlib.sha256(job_description.strip().encode("utf-8")).hexdigest()


def contact_cache_key(domain: str, job_title: str, job_description_hash: Optional[str]) -> str:
    raw = "\x1f".join([domain, job_title, job_description_hash or NO_DESCRIPTION_KEY])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class CacheStore:
    """SQLAlchemy-backed cache. Each call runs in its own short transaction."""

    def __init__(
        self,
        session_factory: Callable = SessionLocal,
        ttl_days: Optional[int] = None,
        credit_cost: Optional[int] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.ttl = timedelta(days=settings.CACHE_TTL_DAYS if ttl_days is None else ttl_days)
        self.credit_cost = settings.CONTACT_SEARCH_CREDIT_COST if credit_cost is None else credit_cost
        self._now = now

    # ============================================
    # COMPANY RESEARCH CACHE
    # ============================================

    def get_company_research(self, domain: str) -> Optional[CompanyResearch]:
        """Return cached research for a domain, or None if absent or expired."""
        return self._hit(
            CompanyResearchCache,
            CompanyResearchCache.company_domain == domain,
            lambda row: CompanyResearch(
                company_domain=row.company_domain,
                cache_hit_count=row.cache_hit_count,
                expires_at=row.expires_at,
                **{name: getattr(row, name) for name in COMPANY_RESEARCH_FIELDS},
            ),
        )

    def set_company_research(self, research: CompanyResearch) -> None:
        """Insert or replace the research for ``research.company_domain`` and restart its TTL."""
        values = {name: getattr(research, name) for name in COMPANY_RESEARCH_FIELDS}
        values["company_domain"] = research.company_domain
        self._upsert(
            CompanyResearchCache,
            CompanyResearchCache.company_domain == research.company_domain,
            values,
        )
        logger.info(f"[Cache] SET company research: {research.company_domain}")

    # ============================================
    # CONTACT SEARCH RESULTS CACHE
    # ============================================

    def get_contact_search(
        self,
        domain: str,
        job_title: str,
        job_description: Optional[str] = None,
    ) -> Optional[ContactSearchEntry]:
        """
        Return cached contacts for an exact (domain, job title, job description) key.

        A lookup without a description only matches entries stored without
        one, and the other way round.
        """
        key = contact_cache_key(domain, job_title, hash_job_description(job_description))
        return self._hit(
            ContactSearchCache,
            ContactSearchCache.cache_key == key,
            lambda row: ContactSearchEntry(
                company_domain=row.company_domain,
                job_title=row.job_title,
                job_description_hash=row.job_description_hash,
                contacts=[Contact.from_dict(c) for c in (row.contacts or [])],
                avg_relevance_score=row.avg_relevance_score,
                key_decision_maker_count=row.key_decision_maker_count,
                cache_hit_count=row.cache_hit_count,
                expires_at=row.expires_at,
            ),
        )

    def set_contact_search(
        self,
        domain: str,
        job_title: str,
        job_description: Optional[str],
        contacts: Sequence[Contact],
    ) -> ContactSearchEntry:
        """Insert or replace the contacts for a search key and restart its TTL."""
        description_hash = hash_job_description(job_description)
        key = contact_cache_key(domain, job_title, description_hash)
        avg_score, key_dm_count = relevance_scorer.summarize(contacts)

        expires_at = self._upsert(
            ContactSearchCache,
            ContactSearchCache.cache_key == key,
            {
                "cache_key": key,
                "company_domain": domain,
                "job_title": job_title,
                "job_description_hash": description_hash,
                "contacts": [c.to_dict() for c in contacts],
                "contact_count": len(contacts),
                "avg_relevance_score": avg_score,
                "key_decision_maker_count": key_dm_count,
            },
        )
        logger.info(f"[Cache] SET contact search: {domain} / {job_title[:40]} ({len(contacts)} contacts)")

        return ContactSearchEntry(
            company_domain=domain,
            job_title=job_title,
            job_description_hash=description_hash,
            contacts=list(contacts),
            avg_relevance_score=avg_score,
            key_decision_maker_count=key_dm_count,
            cache_hit_count=0,
            expires_at=expires_at,
        )

    # ============================================
    # INVALIDATION & CLEANUP
    # ============================================

    def invalidate_company(self, domain: str) -> int:
        """Delete the company research entry for a domain. Returns rows deleted."""
        return self._delete(delete(CompanyResearchCache).where(CompanyResearchCache.company_domain == domain))

    def invalidate_contacts(self, domain: str) -> int:
        """Delete every contact search entry for a domain. Returns rows deleted."""
        return self._delete(delete(ContactSearchCache).where(ContactSearchCache.company_domain == domain))

    def cleanup_expired(self) -> Tuple[int, int]:
        """Bulk delete expired entries of both kinds. Returns (company_deleted, contact_deleted)."""
        now = self._now()
        with self.session_factory() as db:
            company_deleted = db.execute(
                delete(CompanyResearchCache).where(CompanyResearchCache.expires_at <= now)
                .execution_options(synchronize_session=False)
            ).rowcount
            contact_deleted = db.execute(
                delete(ContactSearchCache).where(ContactSearchCache.expires_at <= now)
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()

        logger.info(f"[Cache] Cleanup: {company_deleted} company, {contact_deleted} contact entries removed")
        return company_deleted, contact_deleted

    def cleanup_search_logs(self, retention_days: Optional[int] = None) -> int:
        """Delete search logs older than the retention window. Returns rows deleted."""
        retention_days = settings.SEARCH_LOG_RETENTION_DAYS if retention_days is None else retention_days
        cutoff = self._now() - timedelta(days=retention_days)
        deleted = self._delete(delete(SearchLog).where(SearchLog.created_at < cutoff))
        logger.info(f"[Cache] Search log retention: {deleted} rows older than {retention_days} days removed")
        return deleted

    def cleanup(self, retention_days: Optional[int] = None) -> Dict[str, int]:
        """Expired cache entries plus old search logs, in one pass. Returns rows removed per table."""
        company_deleted, contact_deleted = self.cleanup_expired()
        logs_deleted = self.cleanup_search_logs(retention_days)
        return {
            "company_cache_deleted": company_deleted,
            "contact_cache_deleted": contact_deleted,
            "search_logs_deleted": logs_deleted,
        }

    # ============================================
    # STATISTICS
    # ============================================

    def stats(self, window_days: int = 7) -> CacheStats:
        """Aggregate hit/miss statistics over search logs in the trailing window."""
        since = self._now() - timedelta(days=window_days)
        with self.session_factory() as db:
            total, hits, avg_ms = db.execute(
                select(
                    func.count(SearchLog.id),
                    func.coalesce(func.sum(case((SearchLog.cache_hit.is_(True), 1), else_=0)), 0),
                    func.avg(SearchLog.response_time_ms),
                ).where(SearchLog.created_at >= since)
            ).one()

        total = int(total or 0)
        hits = int(hits or 0)
        return CacheStats(
            window_days=window_days,
            total_searches=total,
            cache_hits=hits,
            cache_misses=total - hits,
            hit_rate=round(hits * 100.0 / total, 2) if total else 0.0,
            avg_response_time_ms=round(float(avg_ms), 2) if avg_ms is not None else 0.0,
            total_credits_saved=hits * self.credit_cost,
        )

    def table_stats(self) -> CacheTableStats:
        """Row counts per cache table, including entries that are expired but not yet cleaned up."""
        now = self._now()
        with self.session_factory() as db:
            def count(model, *criteria) -> int:
                return db.execute(select(func.count(model.id)).where(*criteria)).scalar() or 0

            return CacheTableStats(
                company_cache_count=count(CompanyResearchCache),
                contact_cache_count=count(ContactSearchCache),
                search_logs_count=count(SearchLog),
                expired_company_caches=count(CompanyResearchCache, CompanyResearchCache.expires_at <= now),
                expired_contact_caches=count(ContactSearchCache, ContactSearchCache.expires_at <= now),
            )

    # ============================================
    # HELPERS
    # ============================================

    def _hit(self, model, key_criterion, convert):
        """
        Count a hit on a live row and return convert(row), or None on a miss.

        The increment happens in SQL (``cache_hit_count + 1``) inside the same
        transaction as the read.
        """
        now = self._now()
        try:
            with self.session_factory() as db:
                result = db.execute(
                    update(model)
                    .where(key_criterion, model.expires_at > now)
                    .values(cache_hit_count=model.cache_hit_count + 1, last_accessed_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    db.rollback()
                    return None

                row = db.execute(select(model).where(key_criterion)).scalar_one()
                record = convert(row)
                db.commit()
                return record
        except SQLAlchemyError as e:
            # A failed read is a miss; the caller falls back to a fresh search
            logger.error(f"[Cache] Read failed on {model.__tablename__}: {e}")
            return None

    def _upsert(self, model, key_criterion, values: dict) -> datetime:
        now = self._now()
        expires_at = now + self.ttl
        values = dict(
            values,
            cache_hit_count=0,
            last_accessed_at=now,
            created_at=now,
            expires_at=expires_at,
        )

        # Two attempts: a concurrent writer may insert the same key between
        # our select and our insert, in which case the second pass updates it.
        for attempt in range(2):
            try:
                with self.session_factory() as db:
                    row = db.execute(select(model).where(key_criterion)).scalar_one_or_none()
                    if row is None:
                        db.add(model(**values))
                    else:
                        for name, value in values.items():
                            setattr(row, name, value)
                    db.commit()
                return expires_at
            except IntegrityError as e:
                if attempt == 0:
                    logger.warning(f"[Cache] Concurrent insert on {model.__tablename__}, retrying as update")
                    continue
                raise CacheWriteError(f"Failed to write {model.__tablename__}: {e}") from e
            except SQLAlchemyError as e:
                raise CacheWriteError(f"Failed to write {model.__tablename__}: {e}") from e

        return expires_at

    def _delete(self, statement) -> int:
        with self.session_factory() as db:
            deleted = db.execute(statement.execution_options(synchronize_session=False)).rowcount
            db.commit()
        return deleted or 0
