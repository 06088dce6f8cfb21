"""Shared fixtures – SQLite in memory, blobs under tmp_path, no network."""

import base64
import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from healthlink_api.models import audit, submission  # noqa: F401  (register tables)
from healthlink_api.models.database import Base
from healthlink_api.services.encryption import EnvelopeCipher
from healthlink_api.services.links import LinkService
from healthlink_api.stores.blobs import LocalBlobStore
from healthlink_api.stores.submissions import SubmissionStore

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"


def _bundle(
    given=("Jessica",),
    family="Argonaut",
    bundle_type="collection",
    include_patient=True,
    include_document=True,
    attachment="default",
):
    entries = []
    if include_patient:
        patient = {"resourceType": "Patient", "id": "pat-1"}
        if given is not None or family is not None:
            name = {}
            if given is not None:
                name["given"] = list(given)
            if family is not None:
                name["family"] = family
            patient["name"] = [name]
        entries.append({"fullUrl": "urn:uuid:pat-1", "resource": patient})
    if include_document:
        if attachment == "default":
            attachment = {
                "contentType": "application/pdf",
                "data": base64.b64encode(PDF_BYTES).decode(),
            }
        content = [{"attachment": attachment}] if attachment is not None else [{}]
        entries.append(
            {
                "fullUrl": "urn:uuid:doc-1",
                "resource": {
                    "resourceType": "DocumentReference",
                    "status": "current",
                    "content": content,
                },
            }
        )
    return json.dumps({"resourceType": "Bundle", "type": bundle_type, "entry": entries})


@pytest.fixture
def pdf_bytes():
    return PDF_BYTES


@pytest.fixture
def make_bundle():
    """Factory for FHIR collection bundles; keyword arguments tweak one part."""
    return _bundle


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def submission_store(session_factory):
    return SubmissionStore(session_factory)


@pytest.fixture
def link_service(blob_store, submission_store):
    return LinkService(
        cipher=EnvelopeCipher(),
        blobs=blob_store,
        submissions=submission_store,
        ttl_hours=72,
    )
