"""
FastAPI application entrypoint.

Run locally:  uvicorn healthlink_api.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from healthlink_api.api.routes import router
from healthlink_api.config import settings
from healthlink_api.errors import CryptoError, StorageError, ValidationError
from healthlink_api.models import audit, submission  # noqa: F401  (register tables)
from healthlink_api.models.database import Base, SessionLocal, engine
from healthlink_api.services.links import build_link_service

logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SMART Health Link API",
    description=(
        "Issues short-lived, encrypted SMART Health Links for FHIR bundles "
        "and redeems them as JWE tokens."
    ),
    version="1.0.0",
)

app.include_router(router, prefix="/api/v1")


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def handle_storage_error(request: Request, exc: StorageError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(CryptoError)
async def handle_crypto_error(request: Request, exc: CryptoError):
    logger.critical("Crypto failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    app.state.link_service = build_link_service(settings, SessionLocal)
