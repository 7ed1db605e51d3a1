"""
Contact Search API Endpoints

- Find recruiters / hiring managers at a company for a job
- Cached results are free; a fresh search costs CONTACT_SEARCH_CREDIT_COST
"""
import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import update
from sqlalchemy.orm import Session

from contact_finder.api.dependencies import get_current_user, get_discovery_service
from contact_finder.core.exceptions import (
    AuthError,
    ContactDiscoveryError,
    InsufficientCreditsError,
    InvalidDomainError,
    SearchTimeoutError,
)
from contact_finder.db.session import get_db
from contact_finder.models.user import User
from contact_finder.schemas.contact import (
    CompanyResearchResponse,
    ContactResponse,
    ContactSearchRequest,
    ContactSearchResponse,
)
from contact_finder.services.contact_discovery import ContactDiscoveryService
from contact_finder.utils.domain import get_company_domain

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(exc: ContactDiscoveryError) -> HTTPException:
    if isinstance(exc, InvalidDomainError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, InsufficientCreditsError):
        return HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=str(exc))
    if isinstance(exc, SearchTimeoutError):
        return HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Contact search is taking longer than expected. Please try again in a minute.",
        )
    if isinstance(exc, AuthError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Contact provider authentication failed",
        )
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Contact search failed: {exc}")


def _debit_credits(db: Session, user: User, amount: int) -> None:
    """Atomically take ``amount`` credits from the user (never below zero)."""
    result = db.execute(
        update(User)
        .where(User.id == user.id, User.credits >= amount)
        .values(credits=User.credits - amount)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount == 0:
        logger.warning(f"Could not debit {amount} credit(s) from {user.email}: balance changed during search")
    db.refresh(user)


@router.post("/search", response_model=ContactSearchResponse)
async def search_contacts(
    payload: ContactSearchRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: ContactDiscoveryService = Depends(get_discovery_service),
):
    """Find ranked contacts at a company for a job title (and optional description)."""
    domain = payload.domain or get_company_domain(payload.company_url, payload.company or "")

    def has_credits(cost: int) -> bool:
        # Admins have unlimited credits
        return current_user.is_admin or (current_user.credits or 0) >= cost

    try:
        result = await service.find_contacts(
            domain,
            payload.job_title,
            job_description=payload.job_description,
            user_id=current_user.id,
            credit_check=has_credits,
        )
    except ContactDiscoveryError as e:
        raise _http_error(e)

    credits_deducted = 0
    if result.credits_deducted and not current_user.is_admin:
        _debit_credits(db, current_user, result.credits_deducted)
        credits_deducted = result.credits_deducted

    company = None
    if result.company is not None:
        company = CompanyResearchResponse(**{
            k: v for k, v in asdict(result.company).items()
            if k in CompanyResearchResponse.model_fields
        })

    return ContactSearchResponse(
        domain=result.domain,
        contacts=[ContactResponse(**c.to_dict()) for c in result.contacts],
        cached=result.cached,
        credits_deducted=credits_deducted,
        credits_remaining=None if current_user.is_admin else current_user.credits,
        company=company,
    )
