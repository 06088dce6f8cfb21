"""Audit log model – immutable compliance trail for health link access."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, String

from healthlink_api.models.database import Base


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor = Column(String(256), nullable=False, comment="Recipient or service identity")
    action = Column(String(64), nullable=False, comment="create | read")
    resource_type = Column(String(64), nullable=False)
    resource_id = Column(String(64), nullable=False)
    detail = Column(JSON, comment="Context for the action, never key material")
    timestamp = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index("ix_audit_timestamp", "timestamp"),
        Index("ix_audit_resource", "resource_type", "resource_id"),
    )
