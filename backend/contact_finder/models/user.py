from sqlalchemy import Column, String, Integer, DateTime, Boolean, Uuid
from datetime import datetime, timezone
import uuid

from contact_finder.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    credits = Column(Integer, default=5)
    api_key = Column(Uuid(as_uuid=True), unique=True, default=uuid.uuid4)
    is_active = Column(Boolean, default=True)
    is_admin = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
