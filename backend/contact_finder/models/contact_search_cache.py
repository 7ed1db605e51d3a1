from sqlalchemy import Column, String, Integer, DateTime, Float

from contact_finder.db.base import Base, JSONType


class ContactSearchCache(Base):
    """
    Scored contacts for one (domain, job title, job description) search.

    cache_key is a hash over all three parts so that a NULL job description
    gets its own unique key (NULLs never collide in a unique index).
    """
    __tablename__ = "contact_search_results_cache"

    id = Column(Integer, primary_key=True, index=True)
    cache_key = Column(String(64), unique=True, nullable=False, index=True)
    company_domain = Column(String(255), nullable=False, index=True)
    job_title = Column(String(500), nullable=False)
    job_description_hash = Column(String(64), nullable=True)
    contacts = Column(JSONType, default=list)  # Ordered by relevance_score desc
    contact_count = Column(Integer, default=0, nullable=False)
    avg_relevance_score = Column(Float, nullable=True)
    key_decision_maker_count = Column(Integer, default=0, nullable=False)
    cache_hit_count = Column(Integer, default=0, nullable=False)
    last_accessed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
