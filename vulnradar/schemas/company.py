"""Request/response schemas for companies."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from vulnradar.schemas.auth import UserListItem


class CompanyCreate(BaseModel):
    """Body for POST /companies."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    industry: str | None = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Company name is required")
        return v.strip()


class CompanyOut(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    description: str | None = None
    industry: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CompanyResponse(BaseModel):
    """Single company; company is None when the caller has not joined one."""

    company: CompanyOut | None
    message: str | None = None


class CompaniesListResponse(BaseModel):
    count: int
    companies: list[CompanyOut]


class CompanyUsersResponse(BaseModel):
    """Users of one company, optionally narrowed to eligible assignees."""

    company_id: int
    tlp_rating: str | None = None
    users: list[UserListItem]
