"""
FastAPI routes for issuing and redeeming health links.

The link service is built once at startup and read from app.state through
the get_link_service dependency.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthlink_api.config import settings
from healthlink_api.errors import ValidationError
from healthlink_api.models.database import get_db
from healthlink_api.schemas.api import ErrorResponse, HealthResponse, SmartHealthLink
from healthlink_api.services.links import Available, Expired, LinkService, NotFound, RetrievalResult

logger = logging.getLogger(__name__)

router = APIRouter()

JOSE_MEDIA_TYPE = "application/jose"


def get_link_service(request: Request) -> LinkService:
    return request.app.state.link_service


def _retrieval_response(result: RetrievalResult) -> Response:
    if isinstance(result, NotFound):
        return Response(status_code=404)
    if isinstance(result, Expired):
        return Response(status_code=410)
    if isinstance(result, Available):
        return Response(content=result.token, media_type=JOSE_MEDIA_TYPE)
    raise TypeError(f"Unexpected retrieval result: {result!r}")


def _missing_recipient() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": "The 'recipient' query parameter is required."},
    )


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """Basic health endpoint – verifies DB connectivity."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError:
        db_status = "disconnected"
    return HealthResponse(
        status="healthy",
        environment=settings.ENVIRONMENT,
        database=db_status,
    )


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------

@router.post(
    "/healthlinks",
    response_model=SmartHealthLink,
    responses={400: {"model": ErrorResponse}},
)
async def issue_health_link(request: Request, service: LinkService = Depends(get_link_service)):
    """
    Accept a FHIR Bundle (raw JSON body) and return a SMART Health Link.
    The response is the link JSON, or a shlink:/ URI when configured.
    """
    body = await request.body()
    try:
        bundle_json = body.decode("utf-8")
    except UnicodeDecodeError:
        raise ValidationError("invalid json") from None
    if not bundle_json.strip():
        raise ValidationError("empty body")

    base_url = str(request.base_url)
    link = await run_in_threadpool(service.issue, bundle_json, base_url)

    if settings.SHLINK_RESPONSE_FORMAT == "uri":
        return PlainTextResponse(link.to_shlink_uri())
    return link


# ---------------------------------------------------------------------------
# Retrieve
# ---------------------------------------------------------------------------

@router.get("/healthlinks/{submission_id}", responses={400: {"model": ErrorResponse}})
def retrieve_health_link(
    submission_id: str,
    recipient: str | None = None,
    service: LinkService = Depends(get_link_service),
):
    """Exchange a health link id for a JWE of the FHIR bundle."""
    if not recipient or not recipient.strip():
        return _missing_recipient()
    return _retrieval_response(service.retrieve(submission_id, recipient))


@router.get("/healthlinks/{submission_id}/document", responses={400: {"model": ErrorResponse}})
def retrieve_health_link_document(
    submission_id: str,
    recipient: str | None = None,
    service: LinkService = Depends(get_link_service),
):
    """Exchange a health link id for a JWE of the attached PDF, when enabled."""
    if not settings.HEALTHLINK_DOCUMENT_ENDPOINT:
        return Response(status_code=404)
    if not recipient or not recipient.strip():
        return _missing_recipient()
    return _retrieval_response(service.retrieve_document(submission_id, recipient))
