"""Schemas for audit log listing."""

from datetime import datetime

from pydantic import BaseModel


class AuditLogItem(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    user_id: int | None = None
    action_type: str
    entity_type: str | None = None
    entity_id: int | None = None
    details: str | None = None
    ip_address: str | None = None
    created_at: datetime | None = None


class AuditLogsResponse(BaseModel):
    count: int
    audit_logs: list[AuditLogItem]
