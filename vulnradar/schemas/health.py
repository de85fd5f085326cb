"""Health check payload."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

DatabaseStatus = Literal["connected", "disconnected"]


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"] = Field(
        default="ok", description="'degraded' when the database is unreachable"
    )
    environment: str
    version: str
    database: DatabaseStatus
    checked_at: datetime
