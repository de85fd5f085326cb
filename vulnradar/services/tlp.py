"""TLP classification: deterministic GREEN/AMBER/RED label from source, identifier and publish date.

The label is a sensitivity marker, independent of technical severity. It is computed once at
ingest time from a stable hash bucket of "{external_id}_{source}" and the record's age, and never
recomputed afterwards.
"""

import hashlib
from datetime import UTC, date, datetime

from vulnradar.schemas.vulnerability import TlpRating

HASH_BUCKETS = 100

NVD_SOURCE = "nvd"
CVE_PREFIX = "cve-"

# Age boundaries in days (inclusive upper bounds).
FRESH_MAX_AGE_DAYS = 7
RECENT_MAX_AGE_DAYS = 30
AGING_MAX_AGE_DAYS = 90

# NVD thresholds by age band: bucket below the threshold gets the first label.
NVD_FRESH_AMBER_BELOW = 60  # else RED
NVD_RECENT_AMBER_BELOW = 70  # else GREEN
NVD_AGING_GREEN_BELOW = 80  # else AMBER
NVD_OLD_GREEN_BELOW = 85
NVD_OLD_AMBER_BELOW = 95  # else RED

# Non-NVD CVE-prefixed identifiers.
CVE_RECENT_AMBER_BELOW = 50
CVE_RECENT_RED_BELOW = 80  # else GREEN
CVE_OLD_GREEN_BELOW = 70
CVE_OLD_AMBER_BELOW = 90  # else RED

# Anything else with an identifier.
OTHER_RED_BELOW = 80
OTHER_AMBER_BELOW = 95  # else GREEN


def tlp_hash_bucket(source: str, external_id: str) -> int:
    """Stable bucket in [0, 100) for the pair; identical across processes and runs."""
    key = f"{external_id}_{source}".encode("utf-8")
    digest = hashlib.sha256(key).digest()
    return int.from_bytes(digest[:8], "big") % HASH_BUCKETS


def _age_in_days(published_date: date | datetime, today: date | None) -> int:
    if isinstance(published_date, datetime):
        published_date = published_date.date()
    if today is None:
        today = datetime.now(UTC).date()
    elif isinstance(today, datetime):
        today = today.date()
    return (today - published_date).days


def _classify_nvd(bucket: int, age: int | None) -> TlpRating:
    if age is not None and age <= FRESH_MAX_AGE_DAYS:
        return "AMBER" if bucket < NVD_FRESH_AMBER_BELOW else "RED"
    if age is not None and age <= RECENT_MAX_AGE_DAYS:
        return "AMBER" if bucket < NVD_RECENT_AMBER_BELOW else "GREEN"
    if age is not None and age <= AGING_MAX_AGE_DAYS:
        return "GREEN" if bucket < NVD_AGING_GREEN_BELOW else "AMBER"
    if bucket < NVD_OLD_GREEN_BELOW:
        return "GREEN"
    if bucket < NVD_OLD_AMBER_BELOW:
        return "AMBER"
    return "RED"


def _classify_cve_prefixed(bucket: int, age: int | None) -> TlpRating:
    if age is not None and age <= RECENT_MAX_AGE_DAYS:
        if bucket < CVE_RECENT_AMBER_BELOW:
            return "AMBER"
        if bucket < CVE_RECENT_RED_BELOW:
            return "RED"
        return "GREEN"
    if bucket < CVE_OLD_GREEN_BELOW:
        return "GREEN"
    if bucket < CVE_OLD_AMBER_BELOW:
        return "AMBER"
    return "RED"


def _classify_other(bucket: int) -> TlpRating:
    if bucket < OTHER_RED_BELOW:
        return "RED"
    if bucket < OTHER_AMBER_BELOW:
        return "AMBER"
    return "GREEN"


def classify_tlp(
    source: str | None,
    external_id: str | None,
    published_date: date | datetime | None,
    today: date | None = None,
) -> TlpRating:
    """
    Return the TLP rating for a record. Missing source or identifier is treated as private (RED).
    Future publish dates give a negative age and fall into the freshest band.
    """
    if not source or not source.strip() or not external_id or not external_id.strip():
        return "RED"
    bucket = tlp_hash_bucket(source, external_id)
    age = _age_in_days(published_date, today) if published_date is not None else None

    if source.strip().lower() == NVD_SOURCE:
        return _classify_nvd(bucket, age)
    if external_id.strip().lower().startswith(CVE_PREFIX):
        return _classify_cve_prefixed(bucket, age)
    return _classify_other(bucket)
