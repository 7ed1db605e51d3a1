from fastapi import Depends, HTTPException, status, Header
from sqlalchemy.orm import Session
from typing import Optional
import hmac
import uuid

from contact_finder.db.session import get_db
from contact_finder.models.user import User
from contact_finder.core.config import settings
from contact_finder.services.contact_discovery import ContactDiscoveryService, get_contact_discovery_service


async def get_current_user(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the caller from the X-API-Key header."""
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials. Provide an X-API-Key header.",
        )

    try:
        api_key_uuid = uuid.UUID(x_api_key)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key format"
        )

    user = db.query(User).filter(User.api_key == api_key_uuid).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key or account inactive"
        )
    return user


async def require_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Require the current user to be an admin."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


async def verify_cron_secret(
    authorization: Optional[str] = Header(None)
) -> None:
    """
    Guard for scheduler-triggered endpoints.
    Expects `Authorization: Bearer <CRON_SECRET>`; refuses everything when no secret is configured.
    """
    if not settings.CRON_SECRET:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="CRON_SECRET is not configured"
        )

    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )


def get_discovery_service() -> ContactDiscoveryService:
    return get_contact_discovery_service()
