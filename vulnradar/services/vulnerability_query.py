"""Company vulnerability listings with TLP visibility and the mandatory quality filters."""

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from vulnradar.models import CompanyVendor, Task, Vendor, Vulnerability
from vulnradar.schemas.auth import CurrentUser
from vulnradar.schemas.vulnerability import VulnerabilityOut
from vulnradar.services.access import is_admin, is_visible, visible_tlp_ratings
from vulnradar.services.companies import get_user_company_id
from vulnradar.services.errors import NotFoundError, PermissionDeniedError
from vulnradar.services.ingest import REJECTION_MARKERS

logger = logging.getLogger(__name__)

UNKNOWN_SEVERITY = "Unknown"


def _excludes_marker(column, marker: str):
    # NULL text carries no marker; a bare NOT ILIKE would drop those rows.
    return or_(column.is_(None), ~column.ilike(f"%{marker}%"))


def _mandatory_filters() -> list:
    """Duplicates, rejected candidates and records without a severity are never listed."""
    filters = [
        Vulnerability.is_duplicate.is_(False),
        Vulnerability.severity_level != UNKNOWN_SEVERITY,
    ]
    for marker in REJECTION_MARKERS:
        filters.append(_excludes_marker(Vulnerability.description, marker))
        filters.append(_excludes_marker(Vulnerability.title, marker))
    return filters


def _newest_first(query):
    return query.order_by(
        Vulnerability.published_date.is_(None),
        Vulnerability.published_date.desc(),
        Vulnerability.id.desc(),
    )


def _latest_task_statuses(db: Session, company_id: int, vulnerability_ids: list[int]) -> dict[int, str]:
    if not vulnerability_ids:
        return {}
    rows = (
        db.query(Task.vulnerability_id, Task.status)
        .filter(Task.company_id == company_id, Task.vulnerability_id.in_(vulnerability_ids))
        .order_by(Task.id)
        .all()
    )
    # Later rows overwrite earlier ones.
    return {vulnerability_id: status for vulnerability_id, status in rows}


def _to_out(
    vulnerability: Vulnerability,
    vendor_name: str | None,
    task_status: str | None,
) -> VulnerabilityOut:
    out = VulnerabilityOut.model_validate(vulnerability)
    out.vendor_name = vendor_name
    out.task_status = task_status
    return out


def list_company_vulnerabilities(
    db: Session,
    user: CurrentUser,
    company_id: int,
    tlp_filter: str | None = None,
) -> list[VulnerabilityOut]:
    """
    Vulnerabilities of the company's active vendors visible to the user's role, excluding
    anything that already has a non-closed task in the company. Newest first.
    """
    ratings = sorted(visible_tlp_ratings(user.role, tlp_filter))
    vendor_ids = select(CompanyVendor.vendor_id).where(
        CompanyVendor.company_id == company_id,
        CompanyVendor.is_active.is_(True),
    )
    active_tasks = select(Task.vulnerability_id).where(
        Task.company_id == company_id,
        Task.status != "closed",
    )
    query = (
        db.query(Vulnerability, Vendor.name)
        .outerjoin(Vendor, Vendor.id == Vulnerability.vendor_id)
        .filter(
            Vulnerability.vendor_id.in_(vendor_ids),
            Vulnerability.tlp_rating.in_(ratings),
            Vulnerability.id.not_in(active_tasks),
            *_mandatory_filters(),
        )
    )
    rows = _newest_first(query).all()
    statuses = _latest_task_statuses(db, company_id, [v.id for v, _ in rows])
    logger.info(
        "Company vulnerabilities listed",
        extra={"company_id": company_id, "role": user.role, "count": len(rows)},
    )
    return [_to_out(v, vendor_name, statuses.get(v.id)) for v, vendor_name in rows]


def list_completed_vulnerabilities(
    db: Session,
    user: CurrentUser,
    company_id: int,
) -> list[VulnerabilityOut]:
    """Admin only: vulnerabilities with a closed task in the company."""
    if not is_admin(user.role):
        raise PermissionDeniedError("Admin access required")
    closed_tasks = select(Task.vulnerability_id).where(
        Task.company_id == company_id,
        Task.status == "closed",
    )
    query = (
        db.query(Vulnerability, Vendor.name)
        .outerjoin(Vendor, Vendor.id == Vulnerability.vendor_id)
        .filter(Vulnerability.id.in_(closed_tasks), *_mandatory_filters())
    )
    rows = _newest_first(query).all()
    statuses = _latest_task_statuses(db, company_id, [v.id for v, _ in rows])
    return [_to_out(v, vendor_name, statuses.get(v.id)) for v, vendor_name in rows]


def get_vulnerability_for_user(db: Session, user: CurrentUser, vulnerability_id: int) -> VulnerabilityOut:
    """Single lookup; 404 when missing, 403 when the role may not see its TLP rating."""
    row = (
        db.query(Vulnerability, Vendor.name)
        .outerjoin(Vendor, Vendor.id == Vulnerability.vendor_id)
        .filter(Vulnerability.id == vulnerability_id)
        .first()
    )
    if row is None:
        raise NotFoundError("Vulnerability not found")
    vulnerability, vendor_name = row
    if not is_visible(user.role, vulnerability.tlp_rating):
        raise PermissionDeniedError("You do not have clearance to view this vulnerability")
    task_status = None
    company_id = get_user_company_id(db, user.id)
    if company_id is not None:
        task_status = _latest_task_statuses(db, company_id, [vulnerability.id]).get(vulnerability.id)
    return _to_out(vulnerability, vendor_name, task_status)
