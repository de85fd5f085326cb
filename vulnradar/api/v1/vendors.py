"""Vendor catalogue."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vulnradar.core.database import get_db
from vulnradar.models import Vendor
from vulnradar.schemas.vendor import VendorOut, VendorsListResponse

router = APIRouter()


@router.get("", response_model=VendorsListResponse)
def list_vendors(db: Annotated[Session, Depends(get_db)]) -> VendorsListResponse:
    vendors = db.query(Vendor).order_by(Vendor.name).all()
    return VendorsListResponse(count=len(vendors), vendors=[VendorOut.model_validate(v) for v in vendors])
