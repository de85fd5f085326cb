"""Vulnerability endpoints: company listings, single lookup, manual ingest, and feed download."""

import logging
from collections.abc import Generator
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from vulnradar.api.v1.auth import get_current_user, require_admin
from vulnradar.api.v1.errors import client_ip, to_http_exception
from vulnradar.core.config import get_settings
from vulnradar.core.database import get_db
from vulnradar.models import Vulnerability
from vulnradar.schemas.auth import CurrentUser
from vulnradar.schemas.feed import FeedDownloadReport
from vulnradar.schemas.vulnerability import (
    IngestResponse,
    VulnerabilityIngestRequest,
    VulnerabilityListResponse,
    VulnerabilityOut,
    normalize_tlp_filter,
)
from vulnradar.services.access import is_admin
from vulnradar.services.audit import record_audit
from vulnradar.services.companies import get_user_company_id
from vulnradar.services.errors import ServiceError
from vulnradar.services.feed_download import download_all_vendors
from vulnradar.services.ingest import ingest_vulnerability
from vulnradar.services.nvd_feed import NvdFeedClient
from vulnradar.services.vulnerability_query import (
    get_vulnerability_for_user,
    list_company_vulnerabilities,
    list_completed_vulnerabilities,
)

logger = logging.getLogger(__name__)
router = APIRouter()

RECENT_LIMIT = 100


def get_feed_client() -> Generator[NvdFeedClient, None, None]:
    """Dependency: NVD client closed after the request (overridden in tests)."""
    client = NvdFeedClient(get_settings())
    try:
        yield client
    finally:
        client.close()


def _require_company_id(db: Session, user: CurrentUser) -> int:
    company_id = get_user_company_id(db, user.id)
    if company_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User must be associated with a company",
        )
    return company_id


@router.get("", response_model=list[VulnerabilityOut])
def list_recent_vulnerabilities(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> list[VulnerabilityOut]:
    """Most recently stored vulnerabilities across all vendors (admin only, unfiltered)."""
    rows = (
        db.query(Vulnerability)
        .order_by(Vulnerability.created_at.desc(), Vulnerability.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )
    return [VulnerabilityOut.model_validate(v) for v in rows]


@router.get("/company", response_model=VulnerabilityListResponse)
def get_company_vulnerabilities(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    tlp_rating: Annotated[
        str | None, Query(description="Admins only: restrict to one TLP rating")
    ] = None,
) -> VulnerabilityListResponse:
    """Open vulnerabilities for the caller's company vendors, filtered by the caller's TLP visibility."""
    company_id = _require_company_id(db, current_user)
    vulnerabilities = list_company_vulnerabilities(db, current_user, company_id, tlp_rating)
    applied_filter = normalize_tlp_filter(tlp_rating) if is_admin(current_user.role) else None
    return VulnerabilityListResponse(
        user_role=current_user.role,
        tlp_filter=applied_filter,
        count=len(vulnerabilities),
        vulnerabilities=vulnerabilities,
    )


@router.get("/completed", response_model=VulnerabilityListResponse)
def get_completed_vulnerabilities(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> VulnerabilityListResponse:
    """Vulnerabilities whose task was closed in the caller's company (admin only)."""
    company_id = _require_company_id(db, current_user)
    try:
        vulnerabilities = list_completed_vulnerabilities(db, current_user, company_id)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return VulnerabilityListResponse(
        user_role=current_user.role,
        count=len(vulnerabilities),
        vulnerabilities=vulnerabilities,
    )


@router.get("/{vulnerability_id}", response_model=VulnerabilityOut)
def get_vulnerability(
    vulnerability_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> VulnerabilityOut:
    try:
        return get_vulnerability_for_user(db, current_user, vulnerability_id)
    except ServiceError as e:
        raise to_http_exception(e) from e


@router.post("/ingest", response_model=IngestResponse)
def post_ingest(
    body: VulnerabilityIngestRequest,
    request: Request,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> IngestResponse:
    """Ingest one vulnerability. A duplicate marks the matched existing record instead of inserting."""
    try:
        result = ingest_vulnerability(db, body)
    except ServiceError as e:
        raise to_http_exception(e) from e
    if result.inserted or result.is_duplicate:
        record_audit(
            db,
            admin.id,
            "vulnerability_ingested" if result.inserted else "vulnerability_marked_duplicate",
            entity_type="vulnerability",
            entity_id=result.vulnerability_id or result.duplicate_of_id,
            details=body.cve_id,
            ip_address=client_ip(request),
        )
    return result


@router.post("/download-all", response_model=FeedDownloadReport)
def post_download_all(
    request: Request,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    client: Annotated[NvdFeedClient, Depends(get_feed_client)],
) -> FeedDownloadReport:
    """
    Download recent NVD vulnerabilities for every vendor. Requests are spaced by
    NVD_REQUEST_DELAY_SEC; per-vendor failures are reported, not raised.
    """
    report = download_all_vendors(db, client, get_settings().NVD_REQUEST_DELAY_SEC)
    record_audit(
        db,
        admin.id,
        "feed_downloaded",
        details=report.message,
        ip_address=client_ip(request),
    )
    return report
