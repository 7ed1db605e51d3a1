"""Plain data records passed between the discovery services."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID


EMAIL_STATUSES = ("valid", "invalid", "catch-all", "unknown", "unverified")


@dataclass
class TokenCache:
    """OAuth token plus the monotonic time after which it must be refreshed."""

    access_token: Optional[str] = None
    expires_at: float = 0.0

    def get(self, now: Optional[float] = None) -> Optional[str]:
        now = time.monotonic() if now is None else now
        if self.access_token and now < self.expires_at:
            return self.access_token
        return None

    def store(self, access_token: str, expires_in: float, margin: float, now: Optional[float] = None) -> None:
        now = time.monotonic() if now is None else now
        self.access_token = access_token
        self.expires_at = now + max(0.0, expires_in - margin)

    def clear(self) -> None:
        self.access_token = None
        self.expires_at = 0.0


@dataclass(frozen=True)
class ProspectRecord:
    """Raw person returned by the provider. ``email`` is None for LinkedIn-only people."""

    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[str] = None
    source_page: Optional[str] = None
    smtp_status: Optional[str] = None

    @property
    def has_email(self) -> bool:
        return bool(self.email)


@dataclass(frozen=True)
class Contact:
    id: str
    email: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    full_name: str
    position: Optional[str]
    department: Optional[str]
    relevance_score: int
    is_key_decision_maker: bool
    email_status: str = "unverified"
    source_page: Optional[str] = None
    # Set when the address was guessed from the name, e.g. "first.last"
    email_pattern: Optional[str] = None

    @property
    def has_email(self) -> bool:
        return bool(self.email)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["has_email"] = self.has_email
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Contact":
        return cls(
            id=data["id"],
            email=data.get("email") or None,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            full_name=data.get("full_name") or "",
            position=data.get("position"),
            department=data.get("department"),
            relevance_score=int(data.get("relevance_score", 0)),
            is_key_decision_maker=bool(data.get("is_key_decision_maker", False)),
            email_status=data.get("email_status") or "unverified",
            source_page=data.get("source_page"),
            email_pattern=data.get("email_pattern"),
        )


@dataclass(frozen=True)
class EmailCandidate:
    """Address guessed from a name. ``likelihood`` is the share of companies using ``pattern``, in percent."""

    pattern: str
    email: str
    likelihood: int

    @property
    def confidence(self) -> str:
        if self.likelihood > 20:
            return "high"
        if self.likelihood > 10:
            return "medium"
        return "low"


@dataclass
class CompanyResearch:
    company_domain: str
    company_name: Optional[str] = None
    verified_domain: Optional[str] = None
    company_size_category: Optional[str] = None
    industry: Optional[str] = None
    departments: List[str] = field(default_factory=list)
    office_locations: List[Dict[str, Any]] = field(default_factory=list)
    team_structure: Dict[str, Any] = field(default_factory=dict)
    linkedin_url: Optional[str] = None
    company_description: Optional[str] = None
    founded_year: Optional[int] = None
    cache_hit_count: int = 0
    expires_at: Optional[datetime] = None


@dataclass
class ContactSearchEntry:
    company_domain: str
    job_title: str
    job_description_hash: Optional[str]
    contacts: List[Contact]
    avg_relevance_score: Optional[float]
    key_decision_maker_count: int
    cache_hit_count: int = 0
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class SearchLogEntry:
    company_domain: str
    cache_hit: bool
    contacts_found: int
    contacts_returned: int
    credits_used: int
    response_time_ms: int
    job_title: Optional[str] = None
    user_id: Optional[UUID] = None
    error_type: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class CacheStats:
    window_days: int
    total_searches: int
    cache_hits: int
    cache_misses: int
    hit_rate: float  # Percentage, 0-100
    avg_response_time_ms: float
    total_credits_saved: int


@dataclass(frozen=True)
class CacheTableStats:
    company_cache_count: int
    contact_cache_count: int
    search_logs_count: int
    expired_company_caches: int
    expired_contact_caches: int


@dataclass(frozen=True)
class FindContactsResult:
    contacts: List[Contact]
    cached: bool
    credits_deducted: int
    domain: str
    company: Optional[CompanyResearch] = None
