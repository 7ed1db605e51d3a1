import uuid

import pytest
from fastapi.testclient import TestClient

from contact_finder.api import dependencies
from contact_finder.api.v1.endpoints import admin as admin_endpoints
from contact_finder.core.config import settings
from contact_finder.core.exceptions import SearchTimeoutError
from contact_finder.db.session import get_db
from contact_finder.main import app
from contact_finder.models.user import User
from contact_finder.services.contact_discovery import ContactDiscoveryService
from contact_finder.services.records import ProspectRecord

PROSPECTS = [
    ProspectRecord(email="pat@stripe.com", first_name="Pat", last_name="Lee", position="VP Engineering"),
    ProspectRecord(email=None, first_name="Rae", last_name="Cruz", position="Technical Recruiter"),
]


@pytest.fixture
def search_client(make_client):
    return make_client(PROSPECTS)


@pytest.fixture
def service(search_client, cache_store, search_logger):
    return ContactDiscoveryService(search_client, cache_store, search_logger, credit_cost=1)


@pytest.fixture
def api(session_factory, service):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_discovery_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_user(session_factory, credits: int = 5, is_admin: bool = False) -> str:
    api_key = uuid.uuid4()
    with session_factory() as db:
        db.add(User(email=f"{api_key}@example.com", credits=credits, api_key=api_key, is_admin=is_admin))
        db.commit()
    return str(api_key)


@pytest.fixture
def user_key(session_factory):
    return _create_user(session_factory, credits=5)


@pytest.fixture
def admin_key(session_factory):
    return _create_user(session_factory, credits=0, is_admin=True)


def test_health(api) -> None:
    assert api.get("/health").json() == {"status": "healthy"}


def test_search_requires_api_key(api) -> None:
    response = api.post("/api/v1/contacts/search", json={"domain": "stripe.com", "job_title": "SRE"})
    assert response.status_code == 401

    response = api.post(
        "/api/v1/contacts/search",
        json={"domain": "stripe.com", "job_title": "SRE"},
        headers={"X-API-Key": "not-a-uuid"},
    )
    assert response.status_code == 401


def test_search_debits_credits_only_on_miss(api, user_key, search_client) -> None:
    payload = {"domain": "stripe.com", "job_title": "Backend Engineer"}

    first = api.post("/api/v1/contacts/search", json=payload, headers={"X-API-Key": user_key})
    assert first.status_code == 200
    body = first.json()
    assert body["cached"] is False
    assert body["credits_deducted"] == 1
    assert body["credits_remaining"] == 4
    assert [c["relevance_score"] for c in body["contacts"]] == [90, 70]
    assert body["contacts"][1]["email"] is None
    assert body["contacts"][1]["has_email"] is False

    second = api.post("/api/v1/contacts/search", json=payload, headers={"X-API-Key": user_key})
    assert second.json()["cached"] is True
    assert second.json()["credits_deducted"] == 0
    assert second.json()["credits_remaining"] == 4
    assert search_client.domain_calls == ["stripe.com"]


def test_search_guesses_domain_from_company_name(api, user_key) -> None:
    response = api.post(
        "/api/v1/contacts/search",
        json={"company": "Stripe, Inc.", "job_title": "Backend Engineer"},
        headers={"X-API-Key": user_key},
    )

    assert response.status_code == 200
    assert response.json()["domain"] == "stripe.com"


def test_search_without_credits_returns_402(api, session_factory, search_client) -> None:
    key = _create_user(session_factory, credits=0)

    response = api.post(
        "/api/v1/contacts/search",
        json={"domain": "stripe.com", "job_title": "Backend Engineer"},
        headers={"X-API-Key": key},
    )

    assert response.status_code == 402
    assert search_client.domain_calls == []


def test_admin_is_never_charged(api, admin_key) -> None:
    response = api.post(
        "/api/v1/contacts/search",
        json={"domain": "stripe.com", "job_title": "Backend Engineer"},
        headers={"X-API-Key": admin_key},
    )

    assert response.status_code == 200
    assert response.json()["credits_deducted"] == 0
    assert response.json()["credits_remaining"] is None


def test_invalid_domain_returns_400(api, user_key) -> None:
    response = api.post(
        "/api/v1/contacts/search",
        json={"domain": "not a domain", "job_title": "Backend Engineer"},
        headers={"X-API-Key": user_key},
    )
    assert response.status_code == 400


def test_provider_timeout_returns_504(api, user_key, search_client) -> None:
    search_client.error = SearchTimeoutError("still running")

    response = api.post(
        "/api/v1/contacts/search",
        json={"domain": "stripe.com", "job_title": "Backend Engineer"},
        headers={"X-API-Key": user_key},
    )
    assert response.status_code == 504


def test_cache_stats_requires_admin(api, user_key, admin_key) -> None:
    assert api.get("/api/v1/admin/cache-stats", headers={"X-API-Key": user_key}).status_code == 403

    api.post(
        "/api/v1/contacts/search",
        json={"domain": "stripe.com", "job_title": "Backend Engineer"},
        headers={"X-API-Key": admin_key},
    )
    response = api.get("/api/v1/admin/cache-stats?days=7", headers={"X-API-Key": admin_key})

    assert response.status_code == 200
    body = response.json()
    assert body["performance"]["total_searches"] == 1
    assert body["performance"]["cache_misses"] == 1
    assert body["cache_tables"]["contact_search_results"]["active_entries"] == 1
    assert any("hit rate is low" in r for r in body["recommendations"])


def test_cache_actions(api, admin_key) -> None:
    headers = {"X-API-Key": admin_key}
    api.post("/api/v1/contacts/search", json={"domain": "stripe.com", "job_title": "SRE"}, headers=headers)

    response = api.post("/api/v1/admin/cache", json={"action": "invalidate_contacts", "domain": "stripe.com"}, headers=headers)
    assert response.json()["deleted"] == {"contacts": 1}

    response = api.post("/api/v1/admin/cache", json={"action": "invalidate"}, headers=headers)
    assert response.status_code == 400

    response = api.post("/api/v1/admin/cache", json={"action": "cleanup"}, headers=headers)
    assert response.json()["result"]["total_deleted"] == 0

    response = api.post("/api/v1/admin/cache", json={"action": "explode"}, headers=headers)
    assert response.status_code == 422


def test_cron_cleanup_requires_secret(api, monkeypatch) -> None:
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    assert api.get("/api/v1/admin/cache-cleanup").status_code == 401
    assert api.get("/api/v1/admin/cache-cleanup", headers={"Authorization": "Bearer nope"}).status_code == 401

    response = api.get("/api/v1/admin/cache-cleanup", headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 200
    assert response.json()["result"] == {
        "company_cache_deleted": 0,
        "contact_cache_deleted": 0,
        "search_logs_deleted": 0,
    }


def test_error_log_endpoint(api, admin_key, error_logger, monkeypatch) -> None:
    monkeypatch.setattr(admin_endpoints, "get_error_logger", lambda: error_logger)
    error_logger.log_error("search_logger", "OperationalError", "no such table", domain="stripe.com")

    response = api.get("/api/v1/admin/errors", headers={"X-API-Key": admin_key})

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["summary"]["by_type"] == {"OperationalError": 1}


def test_search_returns_domain_normalized_once(api, user_key, service, monkeypatch) -> None:
    calls = []
    validate = ContactDiscoveryService.validate_domain

    def counting_validate(domain):
        calls.append(domain)
        return validate(domain)

    monkeypatch.setattr(service, "validate_domain", counting_validate)

    response = api.post(
        "/api/v1/contacts/search",
        json={"domain": "https://www.Stripe.com/careers", "job_title": "Backend Engineer"},
        headers={"X-API-Key": user_key},
    )

    assert response.status_code == 200
    assert response.json()["domain"] == "stripe.com"
    assert calls == ["https://www.Stripe.com/careers"]
