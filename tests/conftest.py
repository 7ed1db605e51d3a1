import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from contact_finder import models  # noqa: F401
from contact_finder.db.base import Base
from contact_finder.services.cache_store import CacheStore
from contact_finder.services.error_logger import ErrorLogger
from contact_finder.services.records import ProspectRecord
from contact_finder.services.search_logger import SearchLogger

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeSearchClient:
    """Stands in for SnovClient: returns canned prospects and counts calls."""

    def __init__(self, prospects: Optional[List[ProspectRecord]] = None, delay: float = 0.0, error=None) -> None:
        self.prospects = prospects or []
        self.delay = delay
        self.error = error
        self.domain_calls = []
        self.company_calls = []
        self.verify_results = {}
        self.verify_calls = []

    async def search_domain(self, domain, limit=None):
        self.domain_calls.append(domain)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.prospects)

    async def search_company(self, domain):
        self.company_calls.append(domain)
        return {"name": "Stripe", "size": "5001-10000", "industry": "Financial Services"}

    async def verify_email(self, email):
        self.verify_calls.append(email)
        return self.verify_results.get(email, "invalid")

    async def close(self):
        pass


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def error_logger(redis_client):
    return ErrorLogger(redis_client=redis_client)


@pytest.fixture
def cache_store(session_factory, clock):
    return CacheStore(session_factory, ttl_days=30, credit_cost=1, now=clock)


@pytest.fixture
def search_logger(session_factory, error_logger, clock):
    return SearchLogger(session_factory, error_logger=error_logger, now=clock)


@pytest.fixture
def make_client():
    return FakeSearchClient
