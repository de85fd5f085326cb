"""Pydantic request/response schemas."""

from vulnradar.schemas.auth import CurrentUser, Role
from vulnradar.schemas.feed import FeedDownloadReport, VendorDownloadResult
from vulnradar.schemas.health import HealthResponse
from vulnradar.schemas.task import TaskPriority, TaskStatus
from vulnradar.schemas.vulnerability import (
    IngestResponse,
    SeverityLevel,
    TlpRating,
    VulnerabilityIngestRequest,
)

__all__ = [
    "CurrentUser",
    "FeedDownloadReport",
    "HealthResponse",
    "IngestResponse",
    "Role",
    "SeverityLevel",
    "TaskPriority",
    "TaskStatus",
    "TlpRating",
    "VendorDownloadResult",
    "VulnerabilityIngestRequest",
]
