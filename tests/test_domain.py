import pytest

from contact_finder.utils.domain import (
    get_company_domain,
    guess_company_domain,
    is_valid_domain,
    normalize_domain,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://www.Acme.com/jobs?id=1", "acme.com"),
        ("http://acme.com:8080/", "acme.com"),
        ("  STRIPE.COM.  ", "stripe.com"),
        ("jobs.acme.co.uk", "jobs.acme.co.uk"),
    ],
)
def test_normalize_domain(raw, expected) -> None:
    assert normalize_domain(raw) == expected


@pytest.mark.parametrize(
    "domain, expected",
    [
        ("acme.com", True),
        ("jobs.acme.co.uk", True),
        ("my-company.io", True),
        ("localhost", False),
        ("-acme.com", False),
        ("acme..com", False),
        ("acme.123", False),
        ("not a domain.com", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_domain(domain, expected) -> None:
    assert is_valid_domain(domain) is expected


def test_guess_company_domain() -> None:
    assert guess_company_domain("Acme, Inc.") == "acme.com"
    assert guess_company_domain("Blue Bottle Coffee Company") == "bluebottlecoffee.com"
    assert guess_company_domain("") == ""


def test_get_company_domain_skips_job_boards() -> None:
    assert get_company_domain("https://www.stripe.com/jobs", "Stripe") == "stripe.com"
    assert get_company_domain("https://www.linkedin.com/company/stripe", "Stripe") == "stripe.com"
    assert get_company_domain(None, "Acme LLC") == "acme.com"
