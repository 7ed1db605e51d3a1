from contact_finder.models.user import User
from contact_finder.models.company_research_cache import CompanyResearchCache
from contact_finder.models.contact_search_cache import ContactSearchCache
from contact_finder.models.search_log import SearchLog

__all__ = ["User", "CompanyResearchCache", "ContactSearchCache", "SearchLog"]
