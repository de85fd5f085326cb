"""Audit log listing (admin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from vulnradar.api.v1.auth import require_admin
from vulnradar.core.database import get_db
from vulnradar.models import AuditLog
from vulnradar.schemas.audit import AuditLogItem, AuditLogsResponse
from vulnradar.schemas.auth import CurrentUser

router = APIRouter()


@router.get("", response_model=AuditLogsResponse)
def list_audit_logs(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> AuditLogsResponse:
    entries = (
        db.query(AuditLog)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
    return AuditLogsResponse(
        count=len(entries),
        audit_logs=[AuditLogItem.model_validate(e) for e in entries],
    )
