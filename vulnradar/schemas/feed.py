"""Schemas for the per-vendor feed download report."""

from typing import Literal

from pydantic import BaseModel, Field

VendorDownloadStatus = Literal["success", "no_results", "failed"]


class VendorDownloadResult(BaseModel):
    """Outcome of fetching and ingesting one vendor's batch."""

    vendor_id: int
    vendor: str
    status: VendorDownloadStatus
    downloaded: int = Field(default=0, ge=0)
    duplicates: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0, description="Rejected candidates and unparseable records.")
    error: str | None = None


class FeedDownloadReport(BaseModel):
    """Aggregate result; partial failures are listed per vendor."""

    message: str
    total_downloaded: int = 0
    total_duplicates: int = 0
    vendor_results: list[VendorDownloadResult] = Field(default_factory=list)
