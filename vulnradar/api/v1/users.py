"""Endpoints for the caller's own account, company and vendor selection, plus the admin user list."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from vulnradar.api.v1.auth import get_current_user, require_admin, to_current_user
from vulnradar.api.v1.errors import client_ip, to_http_exception
from vulnradar.core.database import get_db
from vulnradar.models import User
from vulnradar.schemas.auth import (
    CurrentUser,
    UpdateUserRequest,
    UpdateUserRoleRequest,
    UserListItem,
    UsersListResponse,
)
from vulnradar.schemas.company import CompanyOut, CompanyResponse
from vulnradar.schemas.vendor import CompanyVendorsResponse, VendorSelectionRequest
from vulnradar.services.access import is_admin
from vulnradar.services.audit import record_audit
from vulnradar.services.companies import (
    get_user_company,
    get_user_company_id,
    is_company_member,
    link_user_to_company,
    list_company_users,
    list_company_vendors,
    save_company_vendors,
)
from vulnradar.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=UsersListResponse)
def list_users(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """List users of the admin's company (admin only)."""
    company_id = get_user_company_id(db, admin.id)
    users = list_company_users(db, company_id) if company_id is not None else []
    return UsersListResponse(users=[UserListItem.model_validate(u) for u in users])


@router.post("/me", response_model=CurrentUser)
def update_me(
    body: UpdateUserRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    """Join a company. Admins may also change their own role; anyone else gets 403 for a role change."""
    user = db.get(User, current_user.id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if body.role is None and body.company_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide a role or a company_id",
        )
    if body.role is not None and body.role != user.role and not is_admin(user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can change roles",
        )
    if body.role is not None:
        user.role = body.role
        db.commit()
    if body.company_id is not None:
        try:
            link_user_to_company(db, user, body.company_id)
        except ServiceError as e:
            raise to_http_exception(e) from e
    record_audit(
        db,
        user.id,
        "user_updated",
        entity_type="user",
        entity_id=user.id,
        details=f"role={user.role} company_id={body.company_id}",
        ip_address=client_ip(request),
    )
    db.refresh(user)
    return to_current_user(user)


@router.get("/me/company", response_model=CompanyResponse)
def get_my_company(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> CompanyResponse:
    company = get_user_company(db, current_user.id)
    if company is None:
        return CompanyResponse(company=None, message="User is not associated with any company")
    return CompanyResponse(company=CompanyOut.model_validate(company))


@router.get("/me/vendors", response_model=CompanyVendorsResponse)
def get_my_vendors(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> CompanyVendorsResponse:
    company_id = get_user_company_id(db, current_user.id)
    if company_id is None:
        return CompanyVendorsResponse(
            company_id=None, vendors=[], message="User is not associated with any company"
        )
    return CompanyVendorsResponse(company_id=company_id, vendors=list_company_vendors(db, company_id))


@router.put("/me/vendors", response_model=CompanyVendorsResponse)
def put_my_vendors(
    body: VendorSelectionRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> CompanyVendorsResponse:
    """Replace the caller's company vendor selection."""
    company_id = get_user_company_id(db, current_user.id)
    if company_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User must be associated with a company",
        )
    try:
        vendors = save_company_vendors(db, company_id, body.vendor_ids, body.use_case_descriptions)
    except ServiceError as e:
        raise to_http_exception(e) from e
    record_audit(
        db,
        current_user.id,
        "company_vendors_saved",
        entity_type="company",
        entity_id=company_id,
        details=f"vendor_count={len(vendors)}",
        ip_address=client_ip(request),
    )
    return CompanyVendorsResponse(
        company_id=company_id,
        vendors=vendors,
        message=f"Saved {len(vendors)} vendors",
    )


@router.put("/{user_id}/role", response_model=UserListItem)
def put_user_role(
    user_id: int,
    body: UpdateUserRoleRequest,
    request: Request,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UserListItem:
    """Change the role of a member of the admin's company (admin only)."""
    company_id = get_user_company_id(db, admin.id)
    user = db.get(User, user_id)
    if user is None or company_id is None or not is_company_member(db, user.id, company_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found in your company")
    previous_role = user.role
    user.role = body.role
    db.commit()
    record_audit(
        db,
        admin.id,
        "user_role_changed",
        entity_type="user",
        entity_id=user.id,
        details=f"{previous_role} -> {body.role}",
        ip_address=client_ip(request),
    )
    logger.info(
        "User role changed",
        extra={"user_id": user.id, "from_role": previous_role, "to_role": body.role},
    )
    db.refresh(user)
    return UserListItem.model_validate(user)
