"""
SQLAlchemy-backed submission store.

Each operation runs in its own short session from the injected session
factory. Database failures surface as StorageError and are not retried.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthlink_api.errors import CryptoError, StorageError
from healthlink_api.models.submission import (
    Submission,
    row_to_submission,
    submission_to_row,
    submissions_table,
)
from healthlink_api.services.audit import log_action

logger = logging.getLogger(__name__)


class SubmissionStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def create(self, submission: Submission, *, actor: str) -> None:
        """Insert the submission and its 'create' audit entry in one transaction."""
        try:
            with self._session_factory() as db:
                db.execute(submissions_table.insert().values(**submission_to_row(submission)))
                log_action(
                    db,
                    actor=actor,
                    action="create",
                    resource_id=submission.id,
                    detail={"expires_at": submission.expires_at.isoformat()},
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to persist submission %s: %s", submission.id, type(exc).__name__)
            raise StorageError("submission write failed") from exc

    def get(self, submission_id: str) -> Submission | None:
        try:
            with self._session_factory() as db:
                row = db.execute(
                    select(submissions_table).where(submissions_table.c.id == submission_id)
                ).mappings().first()
        except SQLAlchemyError as exc:
            logger.error("Failed to load submission %s: %s", submission_id, type(exc).__name__)
            raise StorageError("submission lookup failed") from exc
        if row is None:
            return None
        try:
            return row_to_submission(row)
        except ValueError as exc:
            logger.critical("Integrity failure: stored submission %s is malformed: %s", submission_id, exc)
            raise CryptoError("integrity check failed") from None

    def update_storage_keys(self, submission_id: str, bundle_key: str, document_key: str) -> Submission | None:
        """
        Patch the two artifact storage keys.
        Repeating the same patch is a no-op; nothing else on the row changes.
        """
        current = self.get(submission_id)
        if current is None:
            return None
        if current.bundle.storage_key == bundle_key and current.document.storage_key == document_key:
            return current

        patched = current.with_storage_keys(bundle_key, document_key, datetime.now(timezone.utc))
        try:
            with self._session_factory() as db:
                db.execute(
                    update(submissions_table)
                    .where(submissions_table.c.id == submission_id)
                    .values(
                        bundle_storage_key=bundle_key,
                        document_storage_key=document_key,
                        updated_at=patched.updated_at,
                    )
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to patch submission %s: %s", submission_id, type(exc).__name__)
            raise StorageError("submission update failed") from exc
        return patched

    def record_read(self, submission_id: str, recipient: str) -> None:
        """Audit a successful retrieval by a recipient."""
        try:
            with self._session_factory() as db:
                log_action(
                    db,
                    actor=recipient,
                    action="read",
                    resource_id=submission_id,
                    detail={"recipient": recipient},
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to audit read of %s: %s", submission_id, type(exc).__name__)
            raise StorageError("audit write failed") from exc
