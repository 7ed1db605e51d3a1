"""
Contact Discovery Service

Orchestrates a discovery request:

    CHECK_CACHE -> hit: LOG, RETURN
                -> miss: LOCK(key) -> CHECK_CACHE -> hit: LOG, RETURN
                                   -> miss: CHECK_CREDITS -> RESEARCH_COMPANY?
                                            -> EXTERNAL_SEARCH -> SCORE -> GUESS_EMAILS?
                                            -> WRITE_CACHE -> LOG -> RETURN

Concurrent requests for the same (domain, job title, job description) are
serialised on a per-key asyncio.Lock; the follower finds the leader's result
in the cache and is not charged.
"""
import asyncio
import inspect
import logging
import time
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Dict, Optional, Tuple, Union
from uuid import UUID

from contact_finder.core.config import settings
from contact_finder.core.exceptions import (
    CacheWriteError,
    ContactDiscoveryError,
    InsufficientCreditsError,
    InvalidDomainError,
    SearchTimeoutError,
)
from contact_finder.services import relevance_scorer
from contact_finder.services.cache_store import CacheStore, hash_job_description
from contact_finder.services.company_researcher import CompanyResearcher
from contact_finder.services.email_patterns import EmailPatternFinder
from contact_finder.services.error_logger import get_error_logger
from contact_finder.services.records import (
    CacheStats,
    CacheTableStats,
    CompanyResearch,
    FindContactsResult,
    SearchLogEntry,
    TokenCache,
)
from contact_finder.services.search_logger import SearchLogger
from contact_finder.services.snov_client import SnovClient
from contact_finder.services.snov_usage_tracker import get_snov_usage_tracker
from contact_finder.utils.domain import is_valid_domain, normalize_domain

logger = logging.getLogger(__name__)

CreditCheck = Callable[[int], Union[bool, Awaitable[bool]]]


class ContactDiscoveryService:

    def __init__(
        self,
        client,
        cache_store,
        search_logger,
        company_researcher=None,
        error_logger=None,
        email_finder=None,
        credit_cost: Optional[int] = None,
        min_score: Optional[int] = None,
        max_contacts: Optional[int] = None,
        search_limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.cache_store = cache_store
        self.search_logger = search_logger
        self.company_researcher = company_researcher
        self.error_logger = error_logger
        self.email_finder = email_finder
        self.credit_cost = settings.CONTACT_SEARCH_CREDIT_COST if credit_cost is None else credit_cost
        self.min_score = settings.MIN_RELEVANCE_SCORE if min_score is None else min_score
        self.max_contacts = settings.MAX_CONTACTS if max_contacts is None else max_contacts
        self.search_limit = search_limit or settings.SNOV_DOMAIN_SEARCH_LIMIT
        self.timeout = settings.DISCOVERY_TIMEOUT_SECONDS if timeout is None else timeout

        self._locks: Dict[Tuple[str, str, Optional[str]], asyncio.Lock] = {}
        self._lock_users: Dict[Tuple[str, str, Optional[str]], int] = {}

    # ============================================
    # PUBLIC API
    # ============================================

    async def find_contacts(
        self,
        domain: str,
        job_title: str,
        job_description: Optional[str] = None,
        user_id: Optional[UUID] = None,
        credit_check: Optional[CreditCheck] = None,
        timeout: Optional[float] = None,
    ) -> FindContactsResult:
        """
        Return ranked contacts for a company domain and job.

        Raises:
            InvalidDomainError: before any cache or network access
            InsufficientCreditsError: on a miss, before the external search
            SearchTimeoutError: polling budget or ``timeout`` exhausted
            SearchFailedError, AuthError, ProviderError, ProtocolError: provider failures
        """
        started = time.monotonic()
        domain = self.validate_domain(domain)
        job_title = (job_title or "").strip()

        cached = self._from_cache(domain, job_title, job_description, user_id, started)
        if cached is not None:
            return cached

        deadline = timeout if timeout is not None else self.timeout
        search = self._search_single_flight(domain, job_title, job_description, user_id, credit_check, started)
        if deadline is None:
            return await search

        try:
            return await asyncio.wait_for(search, timeout=deadline)
        except asyncio.TimeoutError:
            logger.warning(f"Contact discovery for {domain} exceeded {deadline}s deadline")
            self._log(domain, job_title, user_id, started, error_type=SearchTimeoutError.__name__)
            raise SearchTimeoutError(f"Contact discovery for {domain} timed out after {deadline}s")

    def get_cache_stats(self, window_days: int = 7) -> CacheStats:
        return self.cache_store.stats(window_days)

    def get_cache_table_stats(self) -> CacheTableStats:
        return self.cache_store.table_stats()

    def invalidate(self, domain: str) -> Tuple[int, int]:
        """Drop both cache tiers for a domain. Returns (company_deleted, contact_deleted)."""
        domain = self.validate_domain(domain)
        company_deleted = self.cache_store.invalidate_company(domain)
        contact_deleted = self.cache_store.invalidate_contacts(domain)
        logger.info(f"Invalidated cache for {domain}: {company_deleted} company, {contact_deleted} contact entries")
        return company_deleted, contact_deleted

    def cleanup(self, retention_days: Optional[int] = None) -> Dict[str, int]:
        return self.cache_store.cleanup(retention_days)

    @staticmethod
    def validate_domain(domain: Optional[str]) -> str:
        if not domain or not str(domain).strip():
            raise InvalidDomainError("Company domain is required")
        normalized = normalize_domain(str(domain))
        if not is_valid_domain(normalized):
            raise InvalidDomainError(f"Invalid company domain: {domain!r}")
        return normalized

    # ============================================
    # STATES
    # ============================================

    def _from_cache(self, domain, job_title, job_description, user_id, started) -> Optional[FindContactsResult]:
        entry = self.cache_store.get_contact_search(domain, job_title, job_description)
        if entry is None:
            return None

        logger.info(f"Cache HIT for {domain} / {job_title[:40]} ({len(entry.contacts)} contacts)")
        self._log(
            domain, job_title, user_id, started,
            cache_hit=True,
            contacts_found=len(entry.contacts),
            contacts_returned=len(entry.contacts),
        )
        return FindContactsResult(contacts=entry.contacts, cached=True, credits_deducted=0, domain=domain)

    async def _search_single_flight(self, domain, job_title, job_description, user_id, credit_check, started):
        key = (domain, job_title, hash_job_description(job_description))
        async with self._key_lock(key):
            # The request we waited on may have filled the cache
            cached = self._from_cache(domain, job_title, job_description, user_id, started)
            if cached is not None:
                return cached
            return await self._search(domain, job_title, job_description, user_id, credit_check, started)

    async def _search(self, domain, job_title, job_description, user_id, credit_check, started) -> FindContactsResult:
        logger.info(f"Cache MISS for {domain} / {job_title[:40]}")

        if credit_check is not None:
            allowed = credit_check(self.credit_cost)
            if inspect.isawaitable(allowed):
                allowed = await allowed
            if not allowed:
                raise InsufficientCreditsError(self.credit_cost)

        company = await self._research_company(domain)

        try:
            prospects = await self.client.search_domain(domain, self.search_limit)
        except ContactDiscoveryError as e:
            logger.error(f"External search failed for {domain}: {type(e).__name__}: {e}")
            self._log(domain, job_title, user_id, started, error_type=type(e).__name__)
            raise

        contacts = relevance_scorer.process(
            prospects,
            domain,
            max_results=self.max_contacts,
            min_score=self.min_score,
        )
        logger.info(f"Scored {len(prospects)} prospects for {domain}, kept {len(contacts)}")
        if self.email_finder is not None:
            contacts = await self.email_finder.fill_missing_emails(contacts, domain)

        try:
            self.cache_store.set_contact_search(domain, job_title, job_description, contacts)
        except CacheWriteError as e:
            logger.error(f"Returning uncached result for {domain}: {e}")
            if self.error_logger is not None:
                self.error_logger.log_error(
                    component="cache_store",
                    error_type=type(e.__cause__ or e).__name__,
                    error_message=str(e),
                    domain=domain,
                )

        self._log(
            domain, job_title, user_id, started,
            contacts_found=len(prospects),
            contacts_returned=len(contacts),
            credits_used=self.credit_cost,
        )
        return FindContactsResult(
            contacts=contacts,
            cached=False,
            credits_deducted=self.credit_cost,
            domain=domain,
            company=company,
        )

    async def _research_company(self, domain: str) -> Optional[CompanyResearch]:
        if self.company_researcher is None:
            return None
        return await self.company_researcher.research(domain)

    # ============================================
    # HELPERS
    # ============================================

    @asynccontextmanager
    async def _key_lock(self, key):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    def _log(
        self,
        domain: str,
        job_title: str,
        user_id: Optional[UUID],
        started: float,
        cache_hit: bool = False,
        contacts_found: int = 0,
        contacts_returned: int = 0,
        credits_used: int = 0,
        error_type: Optional[str] = None,
    ) -> None:
        self.search_logger.record(SearchLogEntry(
            company_domain=domain,
            job_title=job_title,
            user_id=user_id,
            cache_hit=cache_hit,
            contacts_found=contacts_found,
            contacts_returned=contacts_returned,
            credits_used=credits_used,
            response_time_ms=int((time.monotonic() - started) * 1000),
            error_type=error_type,
        ))


# Singleton instance
_service: Optional[ContactDiscoveryService] = None


def get_contact_discovery_service() -> ContactDiscoveryService:
    """Get the process-wide discovery service, wired from settings."""
    global _service
    if _service is None:
        error_logger = get_error_logger()
        cache_store = CacheStore()
        client = SnovClient(token_cache=TokenCache(), usage_tracker=get_snov_usage_tracker())
        researcher = CompanyResearcher(client, cache_store) if settings.COMPANY_RESEARCH_ENABLED else None
        email_finder = EmailPatternFinder(client) if settings.EMAIL_PATTERN_FALLBACK_ENABLED else None
        _service = ContactDiscoveryService(
            client=client,
            cache_store=cache_store,
            search_logger=SearchLogger(error_logger=error_logger),
            company_researcher=researcher,
            error_logger=error_logger,
            email_finder=email_finder,
        )
    return _service
