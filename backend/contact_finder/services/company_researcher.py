"""
Company Researcher Service

Enriches a company domain with metadata from the provider's company search:
- Size category (startup / scaleup / enterprise)
- Industry, description, founded year
- Office locations and departments

Results are cached for CACHE_TTL_DAYS. Research is best-effort: any failure
is logged and the discovery request carries on without it.
"""
import logging
import re
from typing import Any, Dict, Optional

from contact_finder.core.exceptions import CacheWriteError, ContactDiscoveryError
from contact_finder.services.records import CompanyResearch

logger = logging.getLogger(__name__)


def categorize_size(size: Optional[Any]) -> Optional[str]:
    """Map a headcount like "51-200" or "10,001+" to startup / scaleup / enterprise."""
    if size is None:
        return None
    numbers = re.findall(r"\d+", str(size).replace(",", ""))
    if not numbers:
        return None
    headcount = int(numbers[0])
    if headcount < 50:
        return "startup"
    if headcount < 500:
        return "scaleup"
    return "enterprise"


def _office_locations(data: Dict[str, Any]) -> list:
    locations = []
    for location in data.get("locations") or []:
        if isinstance(location, dict) and location.get("city"):
            locations.append({
                "city": location.get("city"),
                "country": location.get("country"),
                "is_hq": bool(location.get("is_hq") or location.get("primary")),
            })
    if not locations and data.get("city"):
        locations.append({"city": data.get("city"), "country": data.get("country"), "is_hq": True})
    return locations


def research_from_company_data(domain: str, data: Dict[str, Any]) -> CompanyResearch:
    """Build a CompanyResearch from the provider's company payload."""
    founded = data.get("founded")
    return CompanyResearch(
        company_domain=domain,
        company_name=data.get("company_name") or data.get("name"),
        verified_domain=data.get("domain") or domain,
        company_size_category=categorize_size(data.get("size")),
        industry=data.get("industry"),
        departments=[d for d in (data.get("departments") or []) if isinstance(d, str)],
        office_locations=_office_locations(data),
        team_structure={"size": data.get("size")} if data.get("size") else {},
        linkedin_url=data.get("linkedin") or data.get("linkedin_url"),
        company_description=data.get("description"),
        founded_year=int(founded) if str(founded or "").isdigit() else None,
    )


class CompanyResearcher:
    """Cache-checked company enrichment."""

    def __init__(self, client, cache_store):
        self.client = client
        self.cache_store = cache_store

    async def research(self, domain: str) -> Optional[CompanyResearch]:
        cached = self.cache_store.get_company_research(domain)
        if cached is not None:
            logger.info(f"[CompanyResearcher] Using cached research for {domain}")
            return cached

        logger.info(f"[CompanyResearcher] Cache miss, researching {domain}")
        try:
            data = await self.client.search_company(domain)
        except ContactDiscoveryError as e:
            logger.warning(f"[CompanyResearcher] Research failed for {domain}: {e}")
            return None

        research = research_from_company_data(domain, data)
        try:
            self.cache_store.set_company_research(research)
        except CacheWriteError as e:
            logger.error(f"[CompanyResearcher] {e}")
        return research
