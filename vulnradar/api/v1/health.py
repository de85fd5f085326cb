"""Liveness/readiness check; reports database reachability."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vulnradar.core.config import APP_VERSION, settings
from vulnradar.core.database import check_db_connected, get_db
from vulnradar.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(db: Annotated[Session, Depends(get_db)]) -> HealthResponse:
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        environment=settings.APP_ENV,
        version=APP_VERSION,
        database="connected" if connected else "disconnected",
        checked_at=datetime.now(UTC),
    )
