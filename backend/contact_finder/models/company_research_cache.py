from sqlalchemy import Column, String, Integer, DateTime, Text

from contact_finder.db.base import Base, JSONType


class CompanyResearchCache(Base):
    """Enriched company metadata, one row per domain, 30-day TTL."""
    __tablename__ = "company_research_cache"

    id = Column(Integer, primary_key=True, index=True)
    company_domain = Column(String(255), unique=True, nullable=False, index=True)
    company_name = Column(String(255), nullable=True)
    verified_domain = Column(String(255), nullable=True)
    company_size_category = Column(String(20), nullable=True)  # startup, scaleup, enterprise
    industry = Column(String(255), nullable=True)
    departments = Column(JSONType, default=list)
    office_locations = Column(JSONType, default=list)  # [{"city", "country", "is_hq"}]
    team_structure = Column(JSONType, default=dict)
    linkedin_url = Column(String(500), nullable=True)
    company_description = Column(Text, nullable=True)
    founded_year = Column(Integer, nullable=True)
    cache_hit_count = Column(Integer, default=0, nullable=False)
    last_accessed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
