"""
Relevance scoring for domain search prospects.

Everything here is pure: the same prospects always produce the same
contacts in the same order. Policy lives in the keyword tables below and is
evaluated top-down, first match wins. Matching is case-insensitive and
anchored at the start of a word, so "lead" covers "Leader" and "recruiter"
covers "Recruiters" while "cto" never fires inside "director". Acronyms
only count as whole words.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple

from contact_finder.services.records import Contact, ProspectRecord

MIN_RELEVANCE_SCORE = 50
MAX_CONTACTS = 20
NO_TITLE_SCORE = 30
DEFAULT_SCORE = 40

# Role mailboxes that never reach a person
GENERIC_EMAIL_PREFIXES = (
    "info", "contact", "support", "hello", "sales", "admin", "service",
    "help", "team", "office", "general", "inquiries", "marketing", "press",
    "media", "noreply", "no-reply", "careers", "jobs", "automated",
    "express", "response",
)

C_LEVEL_KEYWORDS = ("ceo", "cto", "cfo", "coo", "chief", "founder", "co-founder", "president")
VP_KEYWORDS = ("vice president", "vp", "svp", "evp", "v.p.")
DIRECTOR_KEYWORDS = ("director", "head of")
HR_KEYWORDS = (
    "human resources", "hr", "people operations", "people ops",
    "talent acquisition", "talent", "recruiter", "recruiting", "recruitment",
    "hiring manager", "staffing", "employee relations",
)
MANAGER_KEYWORDS = ("manager", "lead", "supervisor", "team lead")


@dataclass(frozen=True)
class ScoreTier:
    name: str
    keywords: Tuple[str, ...]
    score: int
    # (keywords, score) pairs checked in order once the tier matched
    modifiers: Tuple[Tuple[Tuple[str, ...], int], ...] = ()


SCORE_TIERS: Tuple[ScoreTier, ...] = (
    ScoreTier("c_level", C_LEVEL_KEYWORDS, 95),
    ScoreTier("vp", VP_KEYWORDS, 90),
    ScoreTier("director", DIRECTOR_KEYWORDS, 85),
    ScoreTier(
        "hr",
        HR_KEYWORDS,
        70,
        modifiers=(
            (("director", "head"), 85),
            (("manager", "lead"), 80),
            (("senior",), 75),
        ),
    ),
    ScoreTier("manager", MANAGER_KEYWORDS, 60),
)

KEY_DECISION_MAKER_KEYWORDS = (
    C_LEVEL_KEYWORDS
    + VP_KEYWORDS
    + DIRECTOR_KEYWORDS
    + ("human resources", "hr", "talent acquisition", "recruiting", "recruiter", "hiring manager")
)

DEPARTMENTS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Human Resources", ("human resources", "hr", "people", "talent", "recruiting", "recruitment", "recruiter")),
    ("Engineering", ("engineering", "engineer", "software", "technical", "developer")),
    ("Sales", ("sales", "business development", "account", "account executive")),
    ("Marketing", ("marketing", "brand", "content")),
    ("Product", ("product", "pm")),
    ("Operations", ("operations", "ops")),
    ("Finance", ("finance", "financial", "accounting")),
    ("Legal", ("legal", "compliance", "counsel")),
)
DEFAULT_DEPARTMENT = "Other"

SMTP_STATUS_MAP = {
    "valid": "valid",
    "invalid": "invalid",
    "not_valid": "invalid",
    "catch-all": "catch-all",
    "catch_all": "catch-all",
    "catchall": "catch-all",
    "unknown": "unknown",
}


# Short tokens that would otherwise fire inside longer words ("coordinator")
WHOLE_WORD_KEYWORDS = frozenset({"ceo", "cto", "cfo", "coo", "vp", "svp", "evp", "hr", "pm", "ops"})
# Matched anywhere in the title ("Cofounder")
INFIX_KEYWORDS = frozenset({"founder"})


@lru_cache(maxsize=None)
def _pattern(keyword: str) -> "re.Pattern[str]":
    if keyword in INFIX_KEYWORDS:
        return re.compile(re.escape(keyword))
    pattern = r"(?<![a-z0-9])" + re.escape(keyword)
    if keyword in WHOLE_WORD_KEYWORDS:
        pattern += r"(?![a-z0-9])"
    return re.compile(pattern)


def _matches_any(text: str, keywords: Iterable[str]) -> bool:
    return any(_pattern(keyword).search(text) for keyword in keywords)


def is_generic_email(email: Optional[str]) -> bool:
    """True for role mailboxes (info@, support@, ...) and local-parts of 2 chars or less."""
    if not email:
        return False
    local_part = email.split("@")[0].strip().lower()
    if len(local_part) <= 2:
        return True
    return any(local_part == prefix or local_part.startswith(prefix) for prefix in GENERIC_EMAIL_PREFIXES)


def calculate_relevance_score(position: Optional[str]) -> int:
    if not position or not position.strip():
        return NO_TITLE_SCORE

    title = position.lower()
    for tier in SCORE_TIERS:
        if not _matches_any(title, tier.keywords):
            continue
        for keywords, score in tier.modifiers:
            if _matches_any(title, keywords):
                return score
        return tier.score
    return DEFAULT_SCORE


def is_key_decision_maker(position: Optional[str]) -> bool:
    if not position:
        return False
    return _matches_any(position.lower(), KEY_DECISION_MAKER_KEYWORDS)


def extract_department(position: Optional[str]) -> Optional[str]:
    if not position or not position.strip():
        return None
    title = position.lower()
    for name, keywords in DEPARTMENTS:
        if _matches_any(title, keywords):
            return name
    return DEFAULT_DEPARTMENT


def normalize_smtp_status(value: Optional[str]) -> str:
    """Map a provider SMTP verdict onto valid, invalid, catch-all or unknown."""
    if not value:
        return "unknown"
    return SMTP_STATUS_MAP.get(value.strip().lower(), "unknown")


def normalize_email_status(prospect: ProspectRecord) -> str:
    if not prospect.has_email or not prospect.smtp_status:
        return "unverified"
    return normalize_smtp_status(prospect.smtp_status)


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def build_contact(prospect: ProspectRecord, domain: str, score: int) -> Contact:
    full_name = " ".join(filter(None, [prospect.first_name, prospect.last_name])).strip()
    if not full_name:
        full_name = prospect.email.split("@")[0] if prospect.has_email else "Unknown"

    if prospect.has_email:
        contact_id = f"{domain}-{prospect.email.lower()}"
    else:
        contact_id = f"{domain}-{_slug(full_name + ' ' + (prospect.position or ''))}"

    return Contact(
        id=contact_id,
        email=prospect.email if prospect.has_email else None,
        first_name=prospect.first_name,
        last_name=prospect.last_name,
        full_name=full_name,
        position=prospect.position,
        department=extract_department(prospect.position),
        relevance_score=score,
        is_key_decision_maker=is_key_decision_maker(prospect.position),
        email_status=normalize_email_status(prospect),
        source_page=prospect.source_page,
    )


def process(
    prospects: Sequence[ProspectRecord],
    domain: str,
    max_results: int = MAX_CONTACTS,
    min_score: int = MIN_RELEVANCE_SCORE,
) -> List[Contact]:
    """
    Filter, score and rank prospects.

    Generic mailboxes and anyone scoring below ``min_score`` are dropped,
    the rest are sorted by score (highest first, ties keep provider order)
    and capped at ``max_results``.
    """
    contacts = []
    seen_ids = set()

    for prospect in prospects:
        if is_generic_email(prospect.email):
            continue

        score = calculate_relevance_score(prospect.position)
        if score < min_score:
            continue

        contact = build_contact(prospect, domain, score)
        if contact.id in seen_ids:
            continue
        seen_ids.add(contact.id)
        contacts.append(contact)

    contacts.sort(key=lambda c: c.relevance_score, reverse=True)
    return contacts[:max_results]


def summarize(contacts: Sequence[Contact]) -> Tuple[Optional[float], int]:
    """Return (average relevance score, key decision maker count)."""
    if not contacts:
        return None, 0
    avg = round(sum(c.relevance_score for c in contacts) / len(contacts), 2)
    return avg, sum(1 for c in contacts if c.is_key_decision_maker)
