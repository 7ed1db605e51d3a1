"""
Email Pattern Finder

Fallback for people the domain search found without an address
(LinkedIn-only prospects). Candidate addresses are built from the name
using the patterns companies use most often, then checked one at a time
with the provider's SMTP verification until a valid one turns up.

Each verification costs a provider credit, so a contact gets at most
max_verifications checks and a search at most max_contacts contacts.
"""
import logging
import re
import unicodedata
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple

from contact_finder.core.config import settings
from contact_finder.core.exceptions import AuthError, ContactDiscoveryError
from contact_finder.services.records import Contact, EmailCandidate

logger = logging.getLogger(__name__)

# (pattern, share of companies using it in percent), most common first
EMAIL_PATTERNS = (
    ("first.last", 46),
    ("first", 23),
    ("flast", 12),
    ("firstlast", 8),
    ("first_last", 5),
    ("last.first", 3),
    ("f.last", 2),
    ("first.l", 1),
)


def normalize_name(name: Optional[str]) -> str:
    """Remove accents and punctuation, lowercase ASCII letters and digits only."""
    name = unicodedata.normalize("NFKD", name or "")
    name = name.encode("ASCII", "ignore").decode("ASCII")
    return re.sub(r"[^a-z0-9]", "", name.lower())


def generate_email_patterns(first_name: Optional[str], last_name: Optional[str], domain: str) -> List[EmailCandidate]:
    """
    Build candidate addresses for a person, most likely first.

    Names are lowercased and reduced to ASCII letters and digits, so
    "José O'Neil" becomes jose / oneil. Returns an empty list when either
    name part is missing.
    """
    first = normalize_name(first_name)
    last = normalize_name(last_name)
    domain = (domain or "").strip().lower()
    if not first or not last or not domain:
        return []

    local_parts = {
        "first.last": f"{first}.{last}",
        "first": first,
        "flast": f"{first[0]}{last}",
        "firstlast": f"{first}{last}",
        "first_last": f"{first}_{last}",
        "last.first": f"{last}.{first}",
        "f.last": f"{first[0]}.{last}",
        "first.l": f"{first}.{last[0]}",
    }

    candidates = []
    seen = set()
    for pattern, likelihood in EMAIL_PATTERNS:
        email = f"{local_parts[pattern]}@{domain}"
        # Single-letter names collapse some patterns onto the same address
        if email in seen:
            continue
        seen.add(email)
        candidates.append(EmailCandidate(pattern=pattern, email=email, likelihood=likelihood))
    return candidates


class EmailPatternFinder:

    def __init__(self, client, max_verifications: Optional[int] = None, max_contacts: Optional[int] = None):
        self.client = client
        self.max_verifications = (
            settings.EMAIL_PATTERN_MAX_VERIFICATIONS if max_verifications is None else max_verifications
        )
        self.max_contacts = settings.EMAIL_PATTERN_MAX_CONTACTS if max_contacts is None else max_contacts

    async def find_email(
        self,
        first_name: Optional[str],
        last_name: Optional[str],
        domain: str,
        exclude: Iterable[str] = (),
    ) -> Optional[Tuple[EmailCandidate, str]]:
        """
        Verify candidates in likelihood order. Returns (candidate, status) or None.

        A valid address ends the search. The first catch-all address is kept
        in case nothing valid turns up. Addresses in ``exclude`` are never
        checked.

        Raises:
            AuthError: the provider rejected our credentials
        """
        excluded = {email.lower() for email in exclude}
        candidates = [c for c in generate_email_patterns(first_name, last_name, domain) if c.email not in excluded]

        fallback = None
        for candidate in candidates[:self.max_verifications]:
            try:
                status = await self.client.verify_email(candidate.email)
            except AuthError:
                raise
            except ContactDiscoveryError as e:
                logger.warning(f"Verification failed for {candidate.email}: {type(e).__name__}: {e}")
                continue

            if status == "valid":
                return candidate, status
            if status == "catch-all" and fallback is None:
                fallback = (candidate, status)
        return fallback

    async def fill_missing_emails(self, contacts: Sequence[Contact], domain: str) -> List[Contact]:
        """Give contacts without an address a verified guess. Order and scores are unchanged."""
        taken = {c.email.lower() for c in contacts if c.has_email}
        result = []
        attempted = 0

        for index, contact in enumerate(contacts):
            if contact.has_email or not (contact.first_name and contact.last_name) or attempted >= self.max_contacts:
                result.append(contact)
                continue

            attempted += 1
            try:
                found = await self.find_email(contact.first_name, contact.last_name, domain, exclude=taken)
            except AuthError as e:
                logger.error(f"Stopping email guessing for {domain}: {e}")
                result.extend(contacts[index:])
                break

            if found is None:
                logger.info(f"No verified address for {contact.full_name} at {domain}")
                result.append(contact)
                continue

            candidate, status = found
            taken.add(candidate.email)
            logger.info(f"Guessed {candidate.email} ({candidate.pattern}, {status}) for {contact.full_name}")
            result.append(replace(contact, email=candidate.email, email_status=status, email_pattern=candidate.pattern))

        return result
