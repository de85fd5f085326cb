"""Company listing, creation, and the per-company user list used for assignment."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from vulnradar.api.v1.auth import get_current_user, require_admin
from vulnradar.api.v1.errors import client_ip
from vulnradar.core.database import get_db
from vulnradar.models import Company
from vulnradar.schemas.auth import CurrentUser, UserListItem
from vulnradar.schemas.company import (
    CompaniesListResponse,
    CompanyCreate,
    CompanyOut,
    CompanyResponse,
    CompanyUsersResponse,
)
from vulnradar.schemas.vulnerability import normalize_tlp_filter
from vulnradar.services.audit import record_audit
from vulnradar.services.companies import create_company, is_company_member
from vulnradar.services.tasks import eligible_assignees

router = APIRouter()


@router.get("", response_model=CompaniesListResponse)
def list_companies(db: Annotated[Session, Depends(get_db)]) -> CompaniesListResponse:
    """All companies by name; public so signup can offer a choice."""
    companies = db.query(Company).order_by(Company.name).all()
    return CompaniesListResponse(
        count=len(companies),
        companies=[CompanyOut.model_validate(c) for c in companies],
    )


@router.post("", response_model=CompanyResponse)
def post_company(
    body: CompanyCreate,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> CompanyResponse:
    """Create a company; an existing company with the same name (any case) is returned instead."""
    company, created = create_company(db, body)
    if not created:
        return CompanyResponse(company=CompanyOut.model_validate(company), message="Company already exists")
    record_audit(
        db,
        current_user.id,
        "company_created",
        entity_type="company",
        entity_id=company.id,
        details=company.name,
        ip_address=client_ip(request),
    )
    return CompanyResponse(company=CompanyOut.model_validate(company), message="Company created")


@router.get("/{company_id}/users", response_model=CompanyUsersResponse)
def get_company_users(
    company_id: int,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    tlp_rating: Annotated[str | None, Query(description="Only users eligible for this TLP rating")] = None,
) -> CompanyUsersResponse:
    """Assignable users of the admin's own company; narrowed to eligible assignees when tlp_rating is set."""
    if not is_company_member(db, admin.id, company_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this company")
    rating = normalize_tlp_filter(tlp_rating)
    if tlp_rating and tlp_rating.strip() and rating is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="tlp_rating must be GREEN, AMBER or RED",
        )
    users = eligible_assignees(db, company_id, rating)
    return CompanyUsersResponse(
        company_id=company_id,
        tlp_rating=rating,
        users=[UserListItem.model_validate(u) for u in users],
    )
