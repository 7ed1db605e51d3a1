import asyncio

import pytest

from contact_finder.core.exceptions import (
    CacheWriteError,
    InsufficientCreditsError,
    InvalidDomainError,
    SearchFailedError,
    SearchTimeoutError,
)
from contact_finder.models.search_log import SearchLog
from contact_finder.services.cache_store import CacheStore
from contact_finder.services.company_researcher import CompanyResearcher
from contact_finder.services.contact_discovery import ContactDiscoveryService
from contact_finder.services.email_patterns import EmailPatternFinder
from contact_finder.services.records import ProspectRecord

STRIPE_PROSPECTS = [
    ProspectRecord(email="pat@stripe.com", first_name="Pat", last_name="Lee", position="VP Engineering", smtp_status="valid"),
    ProspectRecord(email="info@stripe.com", first_name=None, last_name=None, position=None),
    ProspectRecord(email=None, first_name="Rae", last_name="Cruz", position="Technical Recruiter"),
]


@pytest.fixture
def client(make_client):
    return make_client(STRIPE_PROSPECTS)


@pytest.fixture
def service(client, cache_store, search_logger, error_logger):
    return ContactDiscoveryService(
        client=client,
        cache_store=cache_store,
        search_logger=search_logger,
        error_logger=error_logger,
        credit_cost=1,
    )


def _logs(session_factory):
    with session_factory() as db:
        return db.query(SearchLog).order_by(SearchLog.id).all()


async def test_stripe_end_to_end(service, client, session_factory) -> None:
    first = await service.find_contacts("stripe.com", "Backend Engineer")

    assert first.cached is False
    assert first.credits_deducted == 1
    assert [(c.position, c.relevance_score, c.has_email) for c in first.contacts] == [
        ("VP Engineering", 90, True),
        ("Technical Recruiter", 70, False),
    ]
    assert first.contacts[0].email_status == "valid"
    assert first.contacts[0].department == "Engineering"
    assert first.contacts[1].department == "Human Resources"

    second = await service.find_contacts("https://www.Stripe.com/careers", "Backend Engineer")

    assert second.cached is True
    assert second.credits_deducted == 0
    assert second.contacts == first.contacts
    assert client.domain_calls == ["stripe.com"]

    logs = _logs(session_factory)
    assert [(log.cache_hit, log.credits_used) for log in logs] == [(False, 1), (True, 0)]
    assert logs[0].contacts_found == 3
    assert logs[0].contacts_returned == 2


async def test_different_job_descriptions_are_separate_searches(service, client) -> None:
    await service.find_contacts("stripe.com", "Backend Engineer")
    result = await service.find_contacts("stripe.com", "Backend Engineer", job_description="Payments infra")

    assert result.cached is False
    assert len(client.domain_calls) == 2


async def test_concurrent_requests_share_one_search(make_client, cache_store, search_logger) -> None:
    client = make_client(STRIPE_PROSPECTS, delay=0.05)
    service = ContactDiscoveryService(client, cache_store, search_logger, credit_cost=1)

    results = await asyncio.gather(
        service.find_contacts("stripe.com", "Backend Engineer"),
        service.find_contacts("stripe.com", "Backend Engineer"),
    )

    assert client.domain_calls == ["stripe.com"]
    assert sorted(r.cached for r in results) == [False, True]
    assert sum(r.credits_deducted for r in results) == 1
    assert service._locks == {}


async def test_invalid_domain_is_rejected_before_any_io(service, client, session_factory) -> None:
    for domain in ["", None, "not a domain", "localhost"]:
        with pytest.raises(InvalidDomainError):
            await service.find_contacts(domain, "Backend Engineer")

    assert client.domain_calls == []
    assert _logs(session_factory) == []


async def test_insufficient_credits_skips_external_search(service, client) -> None:
    requested = []

    def no_credits(cost: int) -> bool:
        requested.append(cost)
        return False

    with pytest.raises(InsufficientCreditsError) as exc_info:
        await service.find_contacts("stripe.com", "Backend Engineer", credit_check=no_credits)

    assert exc_info.value.required == 1
    assert requested == [1]
    assert client.domain_calls == []


async def test_credit_check_is_not_consulted_on_cache_hit(service) -> None:
    await service.find_contacts("stripe.com", "Backend Engineer")

    async def refuse(cost: int) -> bool:
        return False

    result = await service.find_contacts("stripe.com", "Backend Engineer", credit_check=refuse)
    assert result.cached is True


async def test_async_credit_check_is_awaited(service) -> None:
    async def allow(cost: int) -> bool:
        return True

    result = await service.find_contacts("stripe.com", "Backend Engineer", credit_check=allow)
    assert result.credits_deducted == 1


async def test_provider_failure_is_logged_and_not_cached(make_client, cache_store, search_logger, session_factory) -> None:
    client = make_client(error=SearchFailedError("failed", task_hash="abc"))
    service = ContactDiscoveryService(client, cache_store, search_logger)

    with pytest.raises(SearchFailedError):
        await service.find_contacts("stripe.com", "Backend Engineer")

    assert cache_store.get_contact_search("stripe.com", "Backend Engineer") is None
    [log] = _logs(session_factory)
    assert log.error_type == "SearchFailedError"
    assert log.credits_used == 0
    assert log.contacts_found == 0


async def test_deadline_leaves_no_cache_entry(make_client, cache_store, search_logger, session_factory) -> None:
    client = make_client(STRIPE_PROSPECTS, delay=1.0)
    service = ContactDiscoveryService(client, cache_store, search_logger)

    with pytest.raises(SearchTimeoutError):
        await service.find_contacts("stripe.com", "Backend Engineer", timeout=0.05)

    assert cache_store.get_contact_search("stripe.com", "Backend Engineer") is None
    assert [log.error_type for log in _logs(session_factory)] == ["SearchTimeoutError"]
    assert service._locks == {}


async def test_empty_result_is_cached(make_client, cache_store, search_logger) -> None:
    client = make_client([])
    service = ContactDiscoveryService(client, cache_store, search_logger)

    first = await service.find_contacts("tiny.io", "Designer")
    second = await service.find_contacts("tiny.io", "Designer")

    assert first.contacts == [] and second.contacts == []
    assert second.cached is True
    assert len(client.domain_calls) == 1


async def test_cache_write_failure_still_returns_contacts(
    client, session_factory, clock, search_logger, error_logger
) -> None:
    class FailingStore(CacheStore):
        def set_contact_search(self, *args, **kwargs):
            raise CacheWriteError("disk full")

    store = FailingStore(session_factory, now=clock)
    service = ContactDiscoveryService(client, store, search_logger, error_logger=error_logger)

    result = await service.find_contacts("stripe.com", "Backend Engineer")

    assert len(result.contacts) == 2
    assert result.cached is False
    assert error_logger.get_error_summary()["by_component"] == {"cache_store": 1}


async def test_company_research_is_cached(client, cache_store, search_logger) -> None:
    service = ContactDiscoveryService(
        client, cache_store, search_logger,
        company_researcher=CompanyResearcher(client, cache_store),
    )

    first = await service.find_contacts("stripe.com", "Backend Engineer")
    await service.find_contacts("stripe.com", "Designer")

    assert first.company.company_name == "Stripe"
    assert first.company.company_size_category == "enterprise"
    assert client.company_calls == ["stripe.com"]


async def test_invalidate_and_cleanup(service, cache_store, clock) -> None:
    await service.find_contacts("stripe.com", "Backend Engineer")
    await service.find_contacts("stripe.com", "Designer")

    assert service.invalidate("www.stripe.com") == (0, 2)

    await service.find_contacts("stripe.com", "Backend Engineer")
    clock.advance(days=31)
    assert service.cleanup() == {
        "company_cache_deleted": 0,
        "contact_cache_deleted": 1,
        "search_logs_deleted": 0,
    }


async def test_cache_stats_reflect_hits(service) -> None:
    await service.find_contacts("stripe.com", "Backend Engineer")
    await service.find_contacts("stripe.com", "Backend Engineer")
    await service.find_contacts("stripe.com", "Backend Engineer")

    stats = service.get_cache_stats(7)
    assert stats.total_searches == 3
    assert stats.cache_hits == 2
    assert stats.total_credits_saved == 2


async def test_result_carries_normalized_domain(service) -> None:
    miss = await service.find_contacts("https://www.Stripe.com/careers", "Backend Engineer")
    hit = await service.find_contacts("STRIPE.COM", "Backend Engineer")

    assert (miss.cached, miss.domain) == (False, "stripe.com")
    assert (hit.cached, hit.domain) == (True, "stripe.com")


async def test_contacts_without_email_get_a_verified_guess(client, cache_store, search_logger) -> None:
    client.verify_results = {"rae.cruz@stripe.com": "valid"}
    service = ContactDiscoveryService(
        client, cache_store, search_logger,
        email_finder=EmailPatternFinder(client, max_verifications=3, max_contacts=5),
    )

    first = await service.find_contacts("stripe.com", "Backend Engineer")
    second = await service.find_contacts("stripe.com", "Backend Engineer")

    recruiter = first.contacts[1]
    assert (recruiter.email, recruiter.email_status, recruiter.email_pattern) == (
        "rae.cruz@stripe.com", "valid", "first.last",
    )
    assert first.contacts[0].email_pattern is None
    assert client.verify_calls == ["rae.cruz@stripe.com"]
    assert second.cached is True
    assert second.contacts == first.contacts
