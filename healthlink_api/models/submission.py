"""
Health link submission – one row per issued link.

The domain objects are plain dataclasses. Persistence goes through an
explicit SQLAlchemy Core table and two hand-written mapping functions, so
the dataclasses carry no ORM state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import Column, DateTime, Index, LargeBinary, String, Table

from healthlink_api.models.database import Base
from healthlink_api.services.encryption import KEY_SIZE, NONCE_SIZE, TAG_SIZE


@dataclass(frozen=True)
class ArtifactRef:
    """Where an encrypted artifact lives and the GCM parameters to open it."""

    nonce: bytes
    tag: bytes
    storage_key: str

    def __post_init__(self):
        if len(self.nonce) != NONCE_SIZE:
            raise ValueError(f"Artifact nonce must be {NONCE_SIZE} bytes")
        if len(self.tag) != TAG_SIZE:
            raise ValueError(f"Artifact tag must be {TAG_SIZE} bytes")
        if not self.storage_key:
            raise ValueError("Artifact storage key must not be empty")


@dataclass(frozen=True)
class Submission:
    id: str
    subject_label: str
    encryption_key: bytes
    bundle: ArtifactRef
    document: ArtifactRef
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    def __post_init__(self):
        if len(self.encryption_key) != KEY_SIZE:
            raise ValueError(f"Encryption key must be {KEY_SIZE} bytes")
        if not self.subject_label:
            raise ValueError("Subject label must not be empty")
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be later than created_at")

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now

    def with_storage_keys(self, bundle_key: str, document_key: str, now: datetime) -> Submission:
        """Copy with patched storage keys; keys, nonces and tags are kept."""
        return replace(
            self,
            bundle=replace(self.bundle, storage_key=bundle_key),
            document=replace(self.document, storage_key=document_key),
            updated_at=now,
        )


# ---------------------------------------------------------------------------
# Table + explicit mapping
# ---------------------------------------------------------------------------
submissions_table = Table(
    "healthlink_submissions",
    Base.metadata,
    Column("id", String(64), primary_key=True),
    Column("subject_label", String(256), nullable=False),
    Column("encryption_key", LargeBinary(KEY_SIZE), nullable=False, comment="AES-256 key, per submission"),
    Column("bundle_nonce", LargeBinary(NONCE_SIZE), nullable=False),
    Column("bundle_tag", LargeBinary(TAG_SIZE), nullable=False),
    Column("bundle_storage_key", String(256), nullable=False),
    Column("document_nonce", LargeBinary(NONCE_SIZE), nullable=False),
    Column("document_tag", LargeBinary(TAG_SIZE), nullable=False),
    Column("document_storage_key", String(256), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_healthlink_submissions_expires_at", "expires_at"),
)


def submission_to_row(submission: Submission) -> dict[str, Any]:
    return {
        "id": submission.id,
        "subject_label": submission.subject_label,
        "encryption_key": submission.encryption_key,
        "bundle_nonce": submission.bundle.nonce,
        "bundle_tag": submission.bundle.tag,
        "bundle_storage_key": submission.bundle.storage_key,
        "document_nonce": submission.document.nonce,
        "document_tag": submission.document.tag,
        "document_storage_key": submission.document.storage_key,
        "expires_at": submission.expires_at,
        "created_at": submission.created_at,
        "updated_at": submission.updated_at,
    }


def row_to_submission(row: Mapping[str, Any]) -> Submission:
    return Submission(
        id=row["id"],
        subject_label=row["subject_label"],
        encryption_key=bytes(row["encryption_key"]),
        bundle=ArtifactRef(
            nonce=bytes(row["bundle_nonce"]),
            tag=bytes(row["bundle_tag"]),
            storage_key=row["bundle_storage_key"],
        ),
        document=ArtifactRef(
            nonce=bytes(row["document_nonce"]),
            tag=bytes(row["document_tag"]),
            storage_key=row["document_storage_key"],
        ),
        expires_at=_as_utc(row["expires_at"]),
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
