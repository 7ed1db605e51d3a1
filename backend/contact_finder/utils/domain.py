import re
from typing import Optional
from urllib.parse import urlparse


# Hostname label: alphanumerics and inner hyphens, 1-63 chars
_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")

COMPANY_SUFFIXES = [
    ', llc', ' llc', ', inc.', ' inc.', ', inc', ' inc',
    ', ltd.', ' ltd.', ', ltd', ' ltd',
    ', corporation', ' corporation', ', corp', ' corp',
    ', co.', ' co.', ', co', ' co',
    ' companies', ' company',
    ' & co', ' and co',
    ' group', ' international', ' intl',
]

JOB_BOARDS = [
    'adzuna.com',
    'indeed.com',
    'linkedin.com',
    'glassdoor.com',
    'monster.com',
    'careerbuilder.com',
    'ziprecruiter.com',
    'simplyhired.com',
]


def normalize_domain(website: str) -> str:
    """Extract clean domain from website URL."""
    domain = website.lower().strip()
    domain = domain.replace('http://', '').replace('https://', '')
    if domain.startswith('www.'):
        domain = domain[4:]
    domain = domain.split('/')[0].split('?')[0].split('#')[0]
    domain = domain.split(':')[0]
    return domain.rstrip('.')


def is_valid_domain(domain: Optional[str]) -> bool:
    """True for hostnames like "acme.com" or "jobs.acme.co.uk"."""
    if not domain or len(domain) > 253 or '.' not in domain:
        return False
    labels = domain.split('.')
    if not all(_LABEL_RE.match(label) for label in labels):
        return False
    # TLD must contain a letter
    return any(c.isalpha() for c in labels[-1])


def guess_company_domain(company_name: str) -> str:
    """
    Guess a company's domain from its name ("Acme, Inc." -> "acme.com").
    Used when a job listing has no company URL.
    """
    if not company_name:
        return ''

    domain = company_name.lower().strip()

    for suffix in COMPANY_SUFFIXES:
        if domain.endswith(suffix):
            domain = domain[:-len(suffix)]

    domain = re.sub(r'[^a-z0-9\s-]', '', domain)
    domain = re.sub(r'[\s-]+', '', domain)

    return f"{domain}.com" if domain else ''


def get_company_domain(url: Optional[str], company_name: str) -> str:
    """Domain from a company URL, falling back to a guess when the URL is missing or a job board."""
    if not url:
        return guess_company_domain(company_name)

    parsed = urlparse(url if url.startswith('http') else f"https://{url}")
    hostname = (parsed.hostname or '').lower()
    if hostname.startswith('www.'):
        hostname = hostname[4:]

    if not hostname or any(board in hostname for board in JOB_BOARDS):
        return guess_company_domain(company_name)

    return hostname
