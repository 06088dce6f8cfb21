"""Audit logging for health link issuance and retrieval."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from healthlink_api.models.audit import AuditLog

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "HealthLinkSubmission"


def log_action(
    db: Session,
    *,
    actor: str,
    action: str,
    resource_id: str,
    resource_type: str = RESOURCE_TYPE,
    detail: dict[str, Any] | None = None,
) -> None:
    """Add an immutable audit log entry to the caller's transaction."""
    entry = AuditLog(
        actor=actor,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        detail=detail,
    )
    db.add(entry)
    db.flush()
    logger.info("AUDIT: %s %s %s/%s", actor, action, resource_type, resource_id)
