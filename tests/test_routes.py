"""Tests for the HTTP surface using FastAPI's TestClient."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from healthlink_api.api.routes import get_link_service
from healthlink_api.config import settings
from healthlink_api.main import app
from healthlink_api.models.database import get_db
from healthlink_api.schemas.api import SmartHealthLink
from healthlink_api.services.links import LinkService
from healthlink_api.services.tokens import token_header


@pytest.fixture
def client(link_service, session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_link_service] = lambda: link_service
    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _issue(client, body):
    return client.post(
        "/api/v1/healthlinks",
        content=body,
        headers={"Content-Type": "application/fhir+json"},
    )


def test_health_check(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"


def test_issue_returns_link_json(client, make_bundle):
    response = _issue(client, make_bundle())

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"url", "flag", "key", "exp", "label"}
    assert body["flag"] == "U"
    assert body["label"] == "Jessica Argonaut's health summary"
    assert body["url"].startswith("http://testserver/api/v1/healthlinks/")


def test_issue_as_shlink_uri(client, make_bundle, monkeypatch):
    monkeypatch.setattr(settings, "SHLINK_RESPONSE_FORMAT", "uri")
    response = _issue(client, make_bundle())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    link = SmartHealthLink.from_shlink_uri(response.text)
    assert link.flag == "U"


def test_issue_empty_body_is_bad_request(client):
    response = _issue(client, "  ")
    assert response.status_code == 400
    assert response.json() == {"detail": "empty body"}


def test_issue_invalid_bundle_is_bad_request(client, make_bundle):
    response = _issue(client, make_bundle(bundle_type="document"))
    assert response.status_code == 400
    assert response.json() == {"detail": "not a collection"}


def test_retrieve_requires_recipient(client, make_bundle):
    url = _issue(client, make_bundle()).json()["url"]
    assert client.get(url).status_code == 400
    assert client.get(url, params={"recipient": " "}).status_code == 400


def test_retrieve_returns_jose(client, make_bundle):
    url = _issue(client, make_bundle()).json()["url"]

    response = client.get(url, params={"recipient": "Test Hospital"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/jose")
    assert token_header(response.text)["cty"] == "application/fhir+json"


def test_retrieve_unknown_is_404(client):
    response = client.get("/api/v1/healthlinks/nonexistent", params={"recipient": "Test Hospital"})
    assert response.status_code == 404
    assert response.content == b""


def test_retrieve_expired_is_410(client, make_bundle, link_service):
    url = _issue(client, make_bundle()).json()["url"]
    submission_id = url.rsplit("/", 1)[-1]
    expires_at = link_service.submissions.get(submission_id).expires_at
    later = LinkService(
        cipher=link_service.cipher,
        blobs=link_service.blobs,
        submissions=link_service.submissions,
        clock=lambda: expires_at + timedelta(seconds=1),
    )
    app.dependency_overrides[get_link_service] = lambda: later

    response = client.get(url, params={"recipient": "Test Hospital"})
    assert response.status_code == 410
    assert response.content == b""


def test_tampered_storage_is_opaque_500(client, make_bundle, blob_store):
    url = _issue(client, make_bundle()).json()["url"]
    submission_id = url.rsplit("/", 1)[-1]
    blob_store.write(f"{submission_id}/bundle.enc", b"garbage")

    response = client.get(url, params={"recipient": "Test Hospital"})
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_document_endpoint_disabled_by_default(client, make_bundle, monkeypatch):
    monkeypatch.setattr(settings, "HEALTHLINK_DOCUMENT_ENDPOINT", False)
    url = _issue(client, make_bundle()).json()["url"]
    response = client.get(f"{url}/document", params={"recipient": "Test Hospital"})
    assert response.status_code == 404


def test_document_endpoint_when_enabled(client, make_bundle, monkeypatch):
    monkeypatch.setattr(settings, "HEALTHLINK_DOCUMENT_ENDPOINT", True)
    url = _issue(client, make_bundle()).json()["url"]
    response = client.get(f"{url}/document", params={"recipient": "Test Hospital"})
    assert response.status_code == 200
    assert token_header(response.text)["cty"] == "application/pdf"
