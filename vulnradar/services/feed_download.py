"""Download recent vulnerabilities for every vendor from NVD and ingest them."""

import logging
import time
from collections.abc import Callable
from datetime import date
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vulnradar.models import Vendor
from vulnradar.schemas.feed import FeedDownloadReport, VendorDownloadResult
from vulnradar.schemas.vulnerability import VulnerabilityIngestRequest
from vulnradar.services.ingest import ingest_vulnerability, nvd_record_to_candidate
from vulnradar.services.nvd_feed import FeedError, NvdFeedClient

logger = logging.getLogger(__name__)

# Raised by malformed records (non-numeric scores, wrong JSON shapes); pydantic's
# ValidationError is a ValueError.
RECORD_ERRORS = (ValueError, TypeError, AttributeError, KeyError)


def _record_cve_id(record: Any) -> str | None:
    cve = record.get("cve") if isinstance(record, dict) else None
    return cve.get("id") if isinstance(cve, dict) else None


def _parse_record(record: Any, vendor: Vendor) -> VulnerabilityIngestRequest | None:
    """Candidate for one NVD record, or None when it has no id or cannot be parsed."""
    try:
        return nvd_record_to_candidate(record, vendor_id=vendor.id)
    except RECORD_ERRORS as e:
        logger.warning(
            "Skipping malformed NVD record",
            extra={"vendor": vendor.name, "cve_id": _record_cve_id(record), "error": str(e)},
        )
        return None


def _ingest_records(
    db: Session,
    vendor: Vendor,
    records: list[dict[str, Any]],
    today: date | None,
) -> VendorDownloadResult:
    downloaded = duplicates = skipped = 0
    try:
        for record in records:
            candidate = _parse_record(record, vendor)
            if candidate is None:
                skipped += 1
                continue
            # Existing rows are counted and left untouched.
            outcome = ingest_vulnerability(db, candidate, mark_duplicates=False, today=today)
            if outcome.inserted:
                downloaded += 1
            elif outcome.is_duplicate:
                duplicates += 1
            else:
                skipped += 1
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Database error while ingesting vendor batch",
            extra={"vendor": vendor.name, "error": str(e)},
        )
        return VendorDownloadResult(
            vendor_id=vendor.id,
            vendor=vendor.name,
            status="failed",
            downloaded=downloaded,
            duplicates=duplicates,
            skipped=skipped,
            error="Database error while saving vulnerabilities",
        )

    return VendorDownloadResult(
        vendor_id=vendor.id,
        vendor=vendor.name,
        status="success",
        downloaded=downloaded,
        duplicates=duplicates,
        skipped=skipped,
    )


def download_vendor(
    db: Session,
    client: NvdFeedClient,
    vendor: Vendor,
    today: date | None = None,
) -> VendorDownloadResult:
    """Fetch and ingest one vendor's batch. Failures are reported in the result, never raised."""
    try:
        records = client.search_by_keyword(vendor.name)
        if not records:
            return VendorDownloadResult(vendor_id=vendor.id, vendor=vendor.name, status="no_results")
        return _ingest_records(db, vendor, records, today)
    except FeedError as e:
        return VendorDownloadResult(
            vendor_id=vendor.id, vendor=vendor.name, status="failed", error=e.message
        )
    except Exception as e:
        db.rollback()
        logger.exception("Unexpected error while downloading vendor", extra={"vendor": vendor.name})
        return VendorDownloadResult(
            vendor_id=vendor.id,
            vendor=vendor.name,
            status="failed",
            error=f"Unexpected error: {e}",
        )


def download_all_vendors(
    db: Session,
    client: NvdFeedClient,
    delay_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
    today: date | None = None,
) -> FeedDownloadReport:
    """
    Sequentially download every vendor's vulnerabilities, waiting delay_seconds between requests
    to stay under the NVD rate limit. One vendor's failure does not stop the others.
    """
    vendors = db.query(Vendor).order_by(Vendor.id).all()
    results: list[VendorDownloadResult] = []

    for index, vendor in enumerate(vendors):
        if index > 0 and delay_seconds > 0:
            sleep(delay_seconds)
        result = download_vendor(db, client, vendor, today=today)
        logger.info(
            "Vendor download finished",
            extra={
                "vendor": vendor.name,
                "status": result.status,
                "downloaded": result.downloaded,
                "duplicates": result.duplicates,
            },
        )
        results.append(result)

    total_downloaded = sum(r.downloaded for r in results)
    total_duplicates = sum(r.duplicates for r in results)
    failed = sum(1 for r in results if r.status == "failed")
    message = (
        f"Downloaded {total_downloaded} new vulnerabilities across {len(results)} vendors "
        f"({total_duplicates} duplicates skipped, {failed} vendors failed)"
    )
    logger.info(message)
    return FeedDownloadReport(
        message=message,
        total_downloaded=total_downloaded,
        total_duplicates=total_duplicates,
        vendor_results=results,
    )
