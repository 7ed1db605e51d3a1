from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./contact_finder.db"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Snov.io (prospect discovery provider)
    SNOV_CLIENT_ID: str = ""
    SNOV_CLIENT_SECRET: str = ""
    SNOV_API_BASE_URL: str = "https://api.snov.io"
    SNOV_DOMAIN_SEARCH_LIMIT: int = 50
    SNOV_INITIAL_POLL_DELAY: float = 3.0  # Seconds before the first result poll
    SNOV_POLL_ATTEMPTS: int = 5
    SNOV_POLL_INTERVAL: float = 2.0  # Seconds between result polls
    SNOV_RATE_LIMIT_BACKOFF: List[int] = [0, 5, 10, 30]  # Seconds to wait before each attempt on 429
    SNOV_TOKEN_EXPIRY_MARGIN: int = 300  # Refresh tokens 5 minutes before they expire
    SNOV_REQUEST_TIMEOUT: float = 30.0

    # Cache
    CACHE_TTL_DAYS: int = 30
    CACHE_CLEANUP_INTERVAL_SECONDS: int = 86400  # Once a day
    SEARCH_LOG_RETENTION_DAYS: int = 90

    # Contact discovery
    MIN_RELEVANCE_SCORE: int = 50
    MAX_CONTACTS: int = 20
    CONTACT_SEARCH_CREDIT_COST: int = 1
    COMPANY_RESEARCH_ENABLED: bool = True
    DISCOVERY_TIMEOUT_SECONDS: Optional[float] = None  # Overall deadline for a cache miss
    EMAIL_PATTERN_FALLBACK_ENABLED: bool = False  # Guess and verify addresses for contacts without one
    EMAIL_PATTERN_MAX_VERIFICATIONS: int = 3  # Provider credits spent per contact at most
    EMAIL_PATTERN_MAX_CONTACTS: int = 5  # Contacts per search that get a guessed address

    # Cron endpoints
    CRON_SECRET: str = ""

    # App
    APP_NAME: str = "Contact Finder"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
