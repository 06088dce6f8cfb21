"""
Health link issuance and retrieval.

issue():    bundle -> extract -> seal x2 -> blob writes -> submission row -> link
retrieve(): id -> lookup -> expiry check -> blob read -> open -> JWE

The service is built once at startup (see build_link_service) and holds
only references to its collaborators, so concurrent requests share nothing
mutable.
"""

from __future__ import annotations

import base64
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from healthlink_api.config import Settings
from healthlink_api.errors import CryptoError, ValidationError
from healthlink_api.models.submission import ArtifactRef, Submission
from healthlink_api.schemas.api import SmartHealthLink
from healthlink_api.schemas.fhir import FHIR_JSON_MEDIA_TYPE, PDF_MEDIA_TYPE
from healthlink_api.services.bundles import ExtractedBundle, extract_bundle
from healthlink_api.services.encryption import EnvelopeCipher
from healthlink_api.services.tokens import build_token
from healthlink_api.stores.blobs import LocalBlobStore
from healthlink_api.stores.submissions import SubmissionStore

logger = logging.getLogger(__name__)

RETRIEVAL_PATH = "/api/v1/healthlinks"
BUNDLE_BLOB = "bundle.enc"
DOCUMENT_BLOB = "document.enc"
SERVICE_ACTOR = "healthlink_service"


# ---------------------------------------------------------------------------
# Retrieval outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NotFound:
    submission_id: str


@dataclass(frozen=True)
class Expired:
    submission_id: str
    expired_at: datetime


@dataclass(frozen=True)
class Available:
    submission_id: str
    token: str


RetrievalResult = NotFound | Expired | Available


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_submission_id() -> str:
    return str(uuid.uuid4())


def base64url_key(key: bytes) -> str:
    """Unpadded base64url, as carried in the link payload."""
    return base64.urlsafe_b64encode(key).rstrip(b"=").decode("ascii")


def retrieval_url(base_url: str, submission_id: str) -> str:
    return f"{base_url.rstrip('/')}{RETRIEVAL_PATH}/{submission_id}"


def to_link(submission: Submission, base_url: str) -> SmartHealthLink:
    """Project a submission onto the SMART Health Link descriptor."""
    return SmartHealthLink(
        url=retrieval_url(base_url, submission.id),
        flag="U",
        key=base64url_key(submission.encryption_key),
        exp=int(submission.expires_at.timestamp()),
        label=f"{submission.subject_label}'s health summary",
    )


class LinkService:
    def __init__(
        self,
        *,
        cipher: EnvelopeCipher,
        blobs: LocalBlobStore,
        submissions: SubmissionStore,
        ttl_hours: int = 72,
        extractor: Callable[[str], ExtractedBundle] = extract_bundle,
        token_builder: Callable[[bytes, bytes, str], str] = build_token,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_submission_id,
    ):
        if ttl_hours <= 0:
            raise ValueError("ttl_hours must be positive")
        self.cipher = cipher
        self.blobs = blobs
        self.submissions = submissions
        self.ttl = timedelta(hours=ttl_hours)
        self.extractor = extractor
        self.token_builder = token_builder
        self.clock = clock
        self.id_factory = id_factory

    # -----------------------------------------------------------------------
    # Issue
    # -----------------------------------------------------------------------

    def issue(self, raw_bundle: str, base_url: str) -> SmartHealthLink:
        """
        Encrypt and store a bundle, returning the link a holder can share.
        Raises ValidationError for bad input and StorageError when either
        store fails; no submission row exists unless both blobs were written.
        """
        if not raw_bundle or not raw_bundle.strip():
            raise ValidationError("empty body")

        extracted = self.extractor(raw_bundle)

        key = self.cipher.generate_key()
        submission_id = self.id_factory()

        bundle_box = self.cipher.seal(extracted.bundle_json.encode("utf-8"), key)
        document_box = self.cipher.seal(extracted.document_bytes, key)

        bundle_key = f"{submission_id}/{BUNDLE_BLOB}"
        document_key = f"{submission_id}/{DOCUMENT_BLOB}"
        self.blobs.write(bundle_key, bundle_box.ciphertext)
        self.blobs.write(document_key, document_box.ciphertext)

        now = self.clock()
        submission = Submission(
            id=submission_id,
            subject_label=extracted.subject_label,
            encryption_key=key,
            bundle=ArtifactRef(nonce=bundle_box.nonce, tag=bundle_box.tag, storage_key=bundle_key),
            document=ArtifactRef(nonce=document_box.nonce, tag=document_box.tag, storage_key=document_key),
            expires_at=now + self.ttl,
            created_at=now,
            updated_at=now,
        )
        self.submissions.create(submission, actor=SERVICE_ACTOR)

        logger.info("Issued health link %s expiring %s", submission_id, submission.expires_at.isoformat())
        return to_link(submission, base_url)

    # -----------------------------------------------------------------------
    # Retrieve
    # -----------------------------------------------------------------------

    def retrieve(self, submission_id: str, recipient: str) -> RetrievalResult:
        """Exchange a submission id for a JWE of the stored bundle."""
        return self._retrieve_artifact(submission_id, recipient, document=False)

    def retrieve_document(self, submission_id: str, recipient: str) -> RetrievalResult:
        """Exchange a submission id for a JWE of the stored PDF."""
        return self._retrieve_artifact(submission_id, recipient, document=True)

    def _retrieve_artifact(self, submission_id: str, recipient: str, *, document: bool) -> RetrievalResult:
        submission = self.submissions.get(submission_id)
        if submission is None:
            logger.info("Health link %s not found", submission_id)
            return NotFound(submission_id)

        if submission.is_expired(self.clock()):
            logger.info("Health link %s expired at %s", submission_id, submission.expires_at.isoformat())
            return Expired(submission_id, submission.expires_at)

        artifact = submission.document if document else submission.bundle
        ciphertext = self.blobs.read(artifact.storage_key)
        try:
            plaintext = self.cipher.open(ciphertext, submission.encryption_key, artifact.nonce, artifact.tag)
        except CryptoError:
            logger.critical(
                "Integrity failure: stored %s for health link %s failed authentication",
                "document" if document else "bundle",
                submission_id,
            )
            raise

        content_type = PDF_MEDIA_TYPE if document else FHIR_JSON_MEDIA_TYPE
        token = self.token_builder(plaintext, submission.encryption_key, content_type)
        # no token leaves without a read entry
        self.submissions.record_read(submission_id, recipient)
        return Available(submission_id, token)


# ---------------------------------------------------------------------------
# Service factory
# ---------------------------------------------------------------------------

def build_link_service(settings: Settings, session_factory) -> LinkService:
    """Construct the link service with its concrete collaborators."""
    if settings.SHLINK_RESPONSE_FORMAT not in {"json", "uri"}:
        raise ValueError(f"Unsupported SHLINK_RESPONSE_FORMAT: {settings.SHLINK_RESPONSE_FORMAT}")
    return LinkService(
        cipher=EnvelopeCipher(),
        blobs=LocalBlobStore(settings.BLOB_STORAGE_PATH),
        submissions=SubmissionStore(session_factory),
        ttl_hours=settings.HEALTHLINK_TTL_HOURS,
    )
