"""Pydantic schemas for vulnerability ingestion and listing."""

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator

# Traffic Light Protocol label, independent of technical severity.
TlpRating = Literal["GREEN", "AMBER", "RED"]

TLP_VALUES: frozenset[str] = frozenset({"GREEN", "AMBER", "RED"})

SeverityLevel = Literal["Low", "Medium", "High", "Critical", "Unknown"]

SEVERITY_LEVELS: frozenset[str] = frozenset({"Low", "Medium", "High", "Critical", "Unknown"})


def normalize_severity_level(value: str | None) -> SeverityLevel:
    """Map feed severity strings (e.g. 'HIGH', ' critical ') to the canonical title-case level."""
    if not value or not value.strip():
        return "Unknown"
    normalized = value.strip().capitalize()
    if normalized not in SEVERITY_LEVELS:
        return "Unknown"
    return normalized  # type: ignore[return-value]


def normalize_tlp_filter(value: str | None) -> TlpRating | None:
    """Return the canonical TLP rating for a user-supplied filter, or None when absent/invalid."""
    if not value or not value.strip():
        return None
    normalized = value.strip().upper()
    if normalized not in TLP_VALUES:
        return None
    return normalized  # type: ignore[return-value]


class VulnerabilityIngestRequest(BaseModel):
    """One candidate vulnerability for ingestion. Severity and TLP are derived server-side where missing."""

    model_config = {"extra": "ignore"}

    cve_id: str | None = Field(
        default=None,
        max_length=64,
        description="External feed identifier (e.g. CVE-2024-0001).",
    )
    title: str = Field(..., min_length=1, max_length=1024)
    description: str | None = Field(default=None)
    source: str = Field(default="NVD", max_length=255, description="Feed or source name.")
    source_url: str | None = Field(default=None, max_length=2048)
    published_date: date | None = Field(default=None)
    severity_score: float | None = Field(default=None, ge=0, le=10)
    severity_level: str | None = Field(
        default=None,
        description="Low, Medium, High, Critical; anything else is stored as Unknown.",
    )
    affected_products: str | None = Field(default=None)
    vendor_id: int | None = Field(default=None, ge=1)
    vuln_status: str | None = Field(
        default=None,
        description="Upstream status; 'Rejected' candidates are skipped.",
    )
    duplicate_of_id: int | None = Field(
        default=None,
        ge=1,
        description="Canonical record this candidate duplicates, when known to the caller.",
    )
    raw_data: dict | None = Field(default=None, description="Original feed payload for traceability.")

    @field_validator("cve_id", "source_url", "vuln_status")
    @classmethod
    def strip_optional(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class IngestResponse(BaseModel):
    """Outcome of ingesting one candidate."""

    inserted: bool = Field(..., description="True when a new row was created.")
    skipped: bool = Field(
        default=False,
        description="True when the candidate was a feed rejection artifact and was ignored.",
    )
    is_duplicate: bool = Field(default=False)
    vulnerability_id: int | None = Field(default=None, description="ID of the inserted row.")
    duplicate_of_id: int | None = Field(
        default=None,
        description="ID stored as duplicate_of_id on the matched existing row.",
    )
    message: str = Field(default="")


class VulnerabilityOut(BaseModel):
    """Vulnerability as returned to clients."""

    model_config = {"from_attributes": True}

    id: int
    cve_id: str | None = None
    title: str
    description: str | None = None
    source: str
    source_url: str | None = None
    published_date: date | None = None
    severity_score: float | None = None
    severity_level: str
    tlp_rating: str
    affected_products: str | None = None
    vendor_id: int | None = None
    vendor_name: str | None = None
    is_duplicate: bool = False
    duplicate_of_id: int | None = None
    task_status: str | None = Field(
        default=None,
        description="Status of the requesting company's most recent task on this vulnerability.",
    )


class VulnerabilityListResponse(BaseModel):
    """Response for vulnerability listings."""

    user_role: str
    tlp_filter: TlpRating | None = None
    count: int
    vulnerabilities: list[VulnerabilityOut]
