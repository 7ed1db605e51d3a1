from pydantic import BaseModel, Field, model_validator
from typing import List, Literal, Optional


class ContactSearchRequest(BaseModel):
    domain: Optional[str] = None
    company: Optional[str] = None  # Used to guess the domain when none is given
    company_url: Optional[str] = None
    job_title: str = Field(..., min_length=1, max_length=500)
    job_description: Optional[str] = None

    @model_validator(mode="after")
    def require_company_reference(self):
        if not (self.domain or self.company_url or self.company):
            raise ValueError("One of domain, company_url or company is required")
        return self


class ContactResponse(BaseModel):
    id: str
    email: Optional[str]
    has_email: bool
    first_name: Optional[str]
    last_name: Optional[str]
    full_name: str
    position: Optional[str]
    department: Optional[str]
    relevance_score: int
    is_key_decision_maker: bool
    email_status: str
    source_page: Optional[str] = None
    email_pattern: Optional[str] = None


class OfficeLocation(BaseModel):
    city: str
    country: Optional[str] = None
    is_hq: bool = False


class CompanyResearchResponse(BaseModel):
    company_domain: str
    company_name: Optional[str] = None
    verified_domain: Optional[str] = None
    company_size_category: Optional[str] = None
    industry: Optional[str] = None
    departments: List[str] = []
    office_locations: List[OfficeLocation] = []
    linkedin_url: Optional[str] = None
    company_description: Optional[str] = None
    founded_year: Optional[int] = None


class ContactSearchResponse(BaseModel):
    domain: str
    contacts: List[ContactResponse]
    cached: bool
    credits_deducted: int
    credits_remaining: Optional[int] = None  # None for admins (unlimited)
    company: Optional[CompanyResearchResponse] = None


class CacheActionRequest(BaseModel):
    action: Literal["cleanup", "invalidate", "invalidate_company", "invalidate_contacts"]
    domain: Optional[str] = None

