"""
Contact discovery exceptions.

Provider failures (auth, protocol, polling) propagate to the caller of
ContactDiscoveryService.find_contacts. Cache and log write failures are
raised by the storage layer but swallowed by the orchestrator.
"""
from typing import Optional


class ContactDiscoveryError(Exception):
    """Base class for all contact discovery errors."""


class AuthError(ContactDiscoveryError):
    """Provider credentials are missing or were rejected."""


class ProviderError(ContactDiscoveryError):
    """Provider returned an unexpected HTTP response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(ContactDiscoveryError):
    """Provider response did not have the expected shape (e.g. no task hash)."""


class SearchTimeoutError(ContactDiscoveryError):
    """The search did not complete in time. Safe to retry later."""


class SearchFailedError(ContactDiscoveryError):
    """Provider reported a terminal status other than 'completed'."""

    def __init__(self, status: str, task_hash: Optional[str] = None):
        super().__init__(f"Domain search failed with status '{status}'")
        self.status = status
        self.task_hash = task_hash


class InvalidDomainError(ContactDiscoveryError):
    """Domain is missing or malformed."""


class InsufficientCreditsError(ContactDiscoveryError):
    """Billing layer refused the search."""

    def __init__(self, required: int):
        super().__init__(f"Insufficient credits. This search requires {required} credit(s).")
        self.required = required


class CacheWriteError(ContactDiscoveryError):
    """Persisting a cache entry failed."""


class LogWriteError(ContactDiscoveryError):
    """Persisting a search log entry failed."""
