#!/usr/bin/env python3
"""
Database initialization script.
Creates all tables from the SQLAlchemy models.
"""

from contact_finder.db.base import Base
from contact_finder.db.session import engine
from contact_finder import models  # noqa: F401  (registers the tables)


def init_db():
    """Create all database tables."""
    print("Creating database tables...")

    # Create all tables defined in the models
    Base.metadata.create_all(bind=engine)

    print("✓ Database tables created successfully!")
    for table in sorted(Base.metadata.tables):
        print(f"  - {table}")


if __name__ == "__main__":
    init_db()
