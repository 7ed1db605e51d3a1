import asyncio
import logging
import httpx
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from contact_finder.core.config import settings
from contact_finder.core.exceptions import (
    AuthError,
    ProtocolError,
    ProviderError,
    SearchFailedError,
    SearchTimeoutError,
)
from contact_finder.services.records import ProspectRecord, TokenCache
from contact_finder.services.relevance_scorer import normalize_smtp_status

logger = logging.getLogger(__name__)

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"


class SnovClient:
    """
    Snov.io API client for domain prospect search.
    Implements the async task workflow used by the v2 domain search API:
    1. Authenticate (OAuth client credentials, token cached)
    2. Start a search task and read its task hash
    3. Wait for the provider to begin processing
    4. Poll for the task result until completed, failed or out of attempts
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        token_cache: Optional[TokenCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        usage_tracker=None,
        initial_poll_delay: Optional[float] = None,
        poll_attempts: Optional[int] = None,
        poll_interval: Optional[float] = None,
        rate_limit_backoff: Optional[Sequence[float]] = None,
        token_expiry_margin: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client_id = client_id if client_id is not None else settings.SNOV_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.SNOV_CLIENT_SECRET
        self.base_url = (base_url or settings.SNOV_API_BASE_URL).rstrip("/")
        self.token_cache = token_cache if token_cache is not None else TokenCache()
        self.client = http_client or httpx.AsyncClient(timeout=settings.SNOV_REQUEST_TIMEOUT)
        self.usage_tracker = usage_tracker
        self.initial_poll_delay = settings.SNOV_INITIAL_POLL_DELAY if initial_poll_delay is None else initial_poll_delay
        self.poll_attempts = settings.SNOV_POLL_ATTEMPTS if poll_attempts is None else poll_attempts
        self.poll_interval = settings.SNOV_POLL_INTERVAL if poll_interval is None else poll_interval
        self.rate_limit_backoff = list(rate_limit_backoff if rate_limit_backoff is not None else settings.SNOV_RATE_LIMIT_BACKOFF)
        self.token_expiry_margin = settings.SNOV_TOKEN_EXPIRY_MARGIN if token_expiry_margin is None else token_expiry_margin
        self._sleep = sleep
        self._token_lock = asyncio.Lock()

    async def authenticate(self) -> str:
        """
        Get an OAuth access token, reusing the cached one while it is valid.

        Raises:
            AuthError: credentials missing or rejected by the provider
        """
        token = self.token_cache.get()
        if token:
            return token

        async with self._token_lock:
            # Another task may have refreshed while we waited
            token = self.token_cache.get()
            if token:
                return token

            if not self.client_id or not self.client_secret:
                raise AuthError("Snov.io credentials not configured (SNOV_CLIENT_ID / SNOV_CLIENT_SECRET)")

            try:
                response = await self.client.post(
                    f"{self.base_url}/v1/oauth/access_token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    },
                )
            except httpx.HTTPError as e:
                raise AuthError(f"Failed to authenticate with Snov.io: {e}") from e

            if response.status_code != 200:
                raise AuthError(f"Snov.io auth failed: HTTP {response.status_code} - {response.text}")

            data = response.json()
            access_token = data.get("access_token")
            if not access_token:
                raise AuthError("Snov.io auth response did not include an access token")

            self.token_cache.store(access_token, float(data.get("expires_in", 3600)), self.token_expiry_margin)
            logger.info("Obtained new Snov.io access token")
            return access_token

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        token = await self.authenticate()
        headers = {"Authorization": f"Bearer {token}"}

        for attempt, delay in enumerate(self.rate_limit_backoff):
            if delay:
                await self._sleep(delay)
            try:
                resp = await self.client.request(method, url, headers=headers, params=params, json=json)
            except httpx.HTTPError as e:
                raise ProviderError(f"Snov.io {method} {path} failed: {e}") from e

            if resp.status_code == 429 and attempt < len(self.rate_limit_backoff) - 1:
                logger.warning(f"Snov.io rate limited on {method} {path}, retrying (attempt {attempt + 1})")
                continue
            if resp.status_code == 401:
                self.token_cache.clear()
                raise AuthError(f"Snov.io rejected access token on {method} {path}")
            if 200 <= resp.status_code < 300:
                try:
                    return resp.json()
                except ValueError as e:
                    raise ProtocolError(f"Snov.io returned non-JSON body for {method} {path}") from e

            raise ProviderError(
                f"Snov.io {method} {path} failed: HTTP {resp.status_code} - {resp.text}",
                status_code=resp.status_code,
            )

        raise ProviderError(f"Snov.io {method} {path} failed: no attempts configured")

    def _track(self, operation: str) -> None:
        if self.usage_tracker is None:
            return
        try:
            self.usage_tracker.increment_usage(operation)
        except Exception as e:
            logger.warning(f"Failed to record Snov.io usage for {operation}: {e}")

    async def _run_task(self, start_path: str, result_path: str, params: Dict[str, Any], operation: str) -> Any:
        """Start an async provider task and poll it until it completes. Returns the result ``data``."""
        started = await self._request("POST", start_path, params=params)
        task_hash = (started.get("meta") or {}).get("task_hash")
        if not task_hash:
            raise ProtocolError(f"Snov.io did not return a task hash for {start_path}")
        self._track(operation)

        logger.info(f"Snov.io task {task_hash} started for {params.get('domain')}, waiting {self.initial_poll_delay}s")
        await self._sleep(self.initial_poll_delay)

        for attempt in range(1, self.poll_attempts + 1):
            result = await self._request("GET", f"{result_path}/{task_hash}")
            status = result.get("status")

            if status == STATUS_COMPLETED:
                logger.info(f"Snov.io task {task_hash} completed after {attempt} poll(s)")
                return result.get("data")
            if status != STATUS_IN_PROGRESS:
                raise SearchFailedError(str(status), task_hash=task_hash)

            if attempt < self.poll_attempts:
                await self._sleep(self.poll_interval)

        raise SearchTimeoutError(
            f"Snov.io task {task_hash} not completed after {self.poll_attempts} polls"
        )

    async def search_domain(self, domain: str, limit: Optional[int] = None) -> List[ProspectRecord]:
        """
        Find prospects for a company domain.

        Every prospect yields one record per email address; prospects
        without any email still yield one record with ``email=None``.
        """
        limit = limit or settings.SNOV_DOMAIN_SEARCH_LIMIT
        data = await self._run_task(
            "/v2/domain-search/prospects/start",
            "/v2/domain-search/prospects/result",
            {"domain": domain, "limit": limit},
            "domain_search",
        )
        prospects = normalize_prospects(data or [])
        logger.info(f"Snov.io returned {len(prospects)} prospect records for {domain}")
        return prospects

    async def search_company(self, domain: str) -> Dict[str, Any]:
        """Get company info (name, industry, size, locations) for a domain."""
        data = await self._run_task(
            "/v2/domain-search/start",
            "/v2/domain-search/result",
            {"domain": domain},
            "company_search",
        )
        return data if isinstance(data, dict) else {}

    async def verify_email(self, email: str) -> str:
        """
        Run the provider SMTP check on a single address.

        Returns valid, invalid, catch-all or unknown. Each call costs one
        provider credit.
        """
        data = await self._request("POST", "/v1/email-verifier/verify-single", json={"email": email})
        self._track("email_verification")
        status = normalize_smtp_status(data.get("result"))
        logger.info(f"Snov.io verified {email}: {status}")
        return status

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()


def _extract_emails(raw: Dict[str, Any]) -> List[Dict[str, Optional[str]]]:
    emails = raw.get("emails") or []
    if isinstance(emails, dict):
        emails = emails.get("emails") or []

    result = []
    for item in emails:
        if isinstance(item, str):
            result.append({"email": item, "smtp_status": None})
        elif isinstance(item, dict) and item.get("email"):
            result.append({"email": item["email"], "smtp_status": item.get("smtp_status")})
    return result


def normalize_prospects(raw_prospects: List[Dict[str, Any]]) -> List[ProspectRecord]:
    """Flatten provider prospects into ProspectRecords."""
    records = []
    for raw in raw_prospects:
        base = {
            "first_name": raw.get("first_name") or None,
            "last_name": raw.get("last_name") or None,
            "position": raw.get("position") or None,
            "source_page": raw.get("source_page") or None,
        }
        emails = _extract_emails(raw)
        if not emails:
            records.append(ProspectRecord(email=None, smtp_status=None, **base))
            continue
        for item in emails:
            records.append(ProspectRecord(email=item["email"].strip(), smtp_status=item["smtp_status"], **base))
    return records
