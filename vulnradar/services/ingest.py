"""Vulnerability ingestion: rejection filtering, duplicate detection, TLP/severity derivation, insert.

Also parses NVD CVE API 2.0 records into ingestion candidates.
"""

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from vulnradar.models import Vulnerability
from vulnradar.schemas.vulnerability import (
    IngestResponse,
    SeverityLevel,
    VulnerabilityIngestRequest,
    normalize_severity_level,
)
from vulnradar.services.errors import NotFoundError
from vulnradar.services.tlp import classify_tlp

logger = logging.getLogger(__name__)

# Markers NVD puts in the description of withdrawn candidate numbers.
REJECTION_MARKERS = ("DO NOT USE THIS CANDIDATE NUMBER", "Rejected reason:")
REJECTED_STATUS = "rejected"

NVD_SOURCE_NAME = "NVD"
NVD_DETAIL_URL = "https://nvd.nist.gov/vuln/detail/{cve_id}"
TITLE_DESCRIPTION_MAX_LEN = 500
NO_DESCRIPTION = "No description"

# CVSS metric keys in order of preference.
CVSS_METRIC_KEYS = ("cvssMetricV31", "cvssMetricV30", "cvssMetricV2")


def contains_rejection_marker(text: str | None) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(marker.lower() in lowered for marker in REJECTION_MARKERS)


def is_rejected_candidate(
    vuln_status: str | None,
    title: str | None,
    description: str | None,
) -> bool:
    """True for feed artifacts: upstream status Rejected, or a rejection marker in title/description."""
    if vuln_status and vuln_status.strip().lower() == REJECTED_STATUS:
        return True
    return contains_rejection_marker(title) or contains_rejection_marker(description)


def find_duplicate(db: Session, candidate: VulnerabilityIngestRequest) -> Vulnerability | None:
    """
    Existing record matching the candidate, or None.
    Identifier match first; otherwise case-insensitive title, or description when both have one.
    """
    if candidate.cve_id:
        existing = (
            db.query(Vulnerability)
            .filter(Vulnerability.cve_id == candidate.cve_id)
            .order_by(Vulnerability.id)
            .first()
        )
        if existing is not None:
            return existing

    conditions = [func.lower(Vulnerability.title) == candidate.title.lower()]
    if candidate.description:
        conditions.append(
            and_(
                Vulnerability.description.isnot(None),
                func.lower(Vulnerability.description) == candidate.description.lower(),
            )
        )
    return db.query(Vulnerability).filter(or_(*conditions)).order_by(Vulnerability.id).first()


def _canonical_id(db: Session, vulnerability_id: int) -> int:
    """
    Id of the record a duplicate should point at: vulnerability_id itself, or, when that row is
    a duplicate, the first non-duplicate reached by following duplicate_of_id.
    """
    target = db.get(Vulnerability, vulnerability_id)
    if target is None:
        raise NotFoundError(f"Vulnerability {vulnerability_id} not found")
    seen = {target.id}
    while target.is_duplicate and target.duplicate_of_id is not None:
        if target.duplicate_of_id in seen:
            break
        following = db.get(Vulnerability, target.duplicate_of_id)
        if following is None:
            break
        seen.add(following.id)
        target = following
    return target.id


def ingest_vulnerability(
    db: Session,
    candidate: VulnerabilityIngestRequest,
    mark_duplicates: bool = True,
    today: date | None = None,
) -> IngestResponse:
    """
    Ingest one candidate. Rejected candidates are skipped. A duplicate is not inserted; with
    mark_duplicates the matched existing row is flagged is_duplicate and given duplicate_of_id.
    New rows get a TLP rating from classify_tlp and a normalized severity level.
    Raises NotFoundError when the requested duplicate_of_id does not exist.
    """
    log_extra: dict[str, Any] = {"cve_id": candidate.cve_id, "source": candidate.source}

    if is_rejected_candidate(candidate.vuln_status, candidate.title, candidate.description):
        logger.info("Skipping rejected candidate", extra=log_extra)
        return IngestResponse(inserted=False, skipped=True, message="Rejected candidate skipped")

    existing = find_duplicate(db, candidate)
    if existing is not None:
        log_extra["existing_id"] = existing.id
        if not mark_duplicates:
            logger.info("Duplicate candidate ignored", extra=log_extra)
            return IngestResponse(
                inserted=False,
                is_duplicate=True,
                message="Duplicate vulnerability already exists",
            )
        duplicate_of_id = (
            _canonical_id(db, candidate.duplicate_of_id)
            if candidate.duplicate_of_id is not None
            else existing.id
        )
        if duplicate_of_id == existing.id:
            logger.warning("Duplicate marked with self-reference", extra=log_extra)
        existing.is_duplicate = True
        existing.duplicate_of_id = duplicate_of_id
        db.commit()
        logger.info("Existing vulnerability marked duplicate", extra=log_extra)
        return IngestResponse(
            inserted=False,
            is_duplicate=True,
            duplicate_of_id=duplicate_of_id,
            message="Duplicate vulnerability detected",
        )

    vulnerability = Vulnerability(
        cve_id=candidate.cve_id,
        title=candidate.title,
        description=candidate.description,
        source=candidate.source,
        source_url=candidate.source_url,
        published_date=candidate.published_date,
        severity_score=candidate.severity_score,
        severity_level=normalize_severity_level(candidate.severity_level),
        tlp_rating=classify_tlp(
            candidate.source, candidate.cve_id, candidate.published_date, today=today
        ),
        affected_products=candidate.affected_products,
        vendor_id=candidate.vendor_id,
        raw_data=candidate.raw_data,
        is_duplicate=False,
    )
    db.add(vulnerability)
    db.commit()
    db.refresh(vulnerability)
    log_extra["vulnerability_id"] = vulnerability.id
    log_extra["tlp_rating"] = vulnerability.tlp_rating
    logger.info("Vulnerability ingested", extra=log_extra)
    return IngestResponse(
        inserted=True,
        vulnerability_id=vulnerability.id,
        message="Vulnerability saved successfully",
    )


def extract_severity(metrics: dict[str, Any] | None) -> tuple[float | None, SeverityLevel]:
    """
    Base score and severity level from NVD metrics: CVSS v3.1, then v3.0, then v2.
    Returns (None, "Unknown") when no metric is present.
    """
    if not metrics:
        return None, "Unknown"
    for key in CVSS_METRIC_KEYS:
        entries = metrics.get(key) or []
        if not entries:
            continue
        metric = entries[0] or {}
        cvss_data = metric.get("cvssData") or {}
        score = cvss_data.get("baseScore")
        # v2 carries baseSeverity on the metric, v3.x inside cvssData.
        severity = cvss_data.get("baseSeverity") or metric.get("baseSeverity")
        return (float(score) if score is not None else None), normalize_severity_level(severity)
    return None, "Unknown"


def extract_affected_products(configurations: list[dict[str, Any]] | None) -> str | None:
    """All cpeMatch criteria across every configuration node, joined with ', '."""
    criteria: list[str] = []
    for config in configurations or []:
        for node in config.get("nodes") or []:
            for match in node.get("cpeMatch") or []:
                value = match.get("criteria")
                if value:
                    criteria.append(value)
    return ", ".join(criteria) if criteria else None


def extract_description(descriptions: list[dict[str, Any]] | None) -> str | None:
    for entry in descriptions or []:
        if entry.get("lang") == "en":
            return entry.get("value")
    return None


def _parse_published(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        logger.warning("Unparseable NVD published date", extra={"published": value})
        return None


def nvd_record_to_candidate(
    record: dict[str, Any],
    vendor_id: int | None = None,
) -> VulnerabilityIngestRequest | None:
    """Build an ingestion candidate from one entry of an NVD 'vulnerabilities' array, or None without an id."""
    cve = record.get("cve") or {}
    cve_id = cve.get("id")
    if not cve_id:
        return None

    description = extract_description(cve.get("descriptions"))
    title_body = description[:TITLE_DESCRIPTION_MAX_LEN] if description else NO_DESCRIPTION
    score, level = extract_severity(cve.get("metrics"))

    return VulnerabilityIngestRequest(
        cve_id=cve_id,
        title=f"{cve_id}: {title_body}",
        description=description,
        source=NVD_SOURCE_NAME,
        source_url=NVD_DETAIL_URL.format(cve_id=cve_id),
        published_date=_parse_published(cve.get("published")),
        severity_score=score,
        severity_level=level,
        affected_products=extract_affected_products(cve.get("configurations")),
        vendor_id=vendor_id,
        vuln_status=cve.get("vulnStatus"),
        raw_data=record,
    )
