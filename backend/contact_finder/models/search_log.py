from sqlalchemy import Column, String, Integer, DateTime, Boolean, BigInteger, Uuid

from contact_finder.db.base import Base


class SearchLog(Base):
    """One row per discovery attempt. Never updated."""
    __tablename__ = "contact_search_logs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    company_domain = Column(String(255), nullable=False, index=True)
    job_title = Column(String(500), nullable=True)
    cache_hit = Column(Boolean, nullable=False, default=False)
    contacts_found = Column(Integer, nullable=False, default=0)
    contacts_returned = Column(Integer, nullable=False, default=0)
    credits_used = Column(Integer, nullable=False, default=0)
    response_time_ms = Column(Integer, nullable=True)
    error_type = Column(String(100), nullable=True)  # e.g. SearchTimeoutError, null on success
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
