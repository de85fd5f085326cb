"""Request/response schemas for vendors and company vendor selection."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

VendorType = Literal["Hardware", "Software", "Both"]


class VendorOut(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    vendor_type: str
    description: str | None = None


class VendorsListResponse(BaseModel):
    count: int
    vendors: list[VendorOut]


class VendorSelectionRequest(BaseModel):
    """Full replacement of a company's vendor set."""

    vendor_ids: list[int] = Field(default_factory=list)
    use_case_descriptions: dict[int, str] | None = Field(
        default=None,
        description="Vendor id -> free-text use case.",
    )

    @field_validator("vendor_ids")
    @classmethod
    def dedupe_vendor_ids(cls, v: list[int]) -> list[int]:
        seen: list[int] = []
        for vendor_id in v:
            if vendor_id not in seen:
                seen.append(vendor_id)
        return seen


class CompanyVendorOut(BaseModel):
    vendor_id: int
    vendor_name: str
    vendor_type: str
    vendor_description: str | None = None
    use_case_description: str | None = None
    is_active: bool = True


class CompanyVendorsResponse(BaseModel):
    company_id: int | None
    vendors: list[CompanyVendorOut]
    message: str | None = None
