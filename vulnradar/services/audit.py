"""Audit trail writes for state-changing actions."""

import logging

from sqlalchemy.orm import Session

from vulnradar.models import AuditLog

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    user_id: int | None,
    action_type: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
    details: str | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    """Append one audit entry and commit."""
    entry = AuditLog(
        user_id=user_id,
        action_type=action_type,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        ip_address=ip_address,
    )
    db.add(entry)
    db.commit()
    logger.info(
        "Audit entry recorded",
        extra={"action_type": action_type, "entity_type": entity_type, "entity_id": entity_id},
    )
    return entry
