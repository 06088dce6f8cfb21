"""Pydantic models for API request/response serialization."""

from __future__ import annotations

import base64

from pydantic import BaseModel

SHLINK_PREFIX = "shlink:/"


# ---------------------------------------------------------------------------
# SMART Health Link payload
# ---------------------------------------------------------------------------

class SmartHealthLink(BaseModel):
    """Link descriptor returned on issuance. Never persisted."""
    url: str
    flag: str = "U"
    key: str
    exp: int
    label: str

    def to_shlink_uri(self) -> str:
        """Wrap the descriptor as shlink:/<base64url(JSON)>."""
        payload = self.model_dump_json().encode()
        encoded = base64.urlsafe_b64encode(payload).rstrip(b"=").decode("ascii")
        return f"{SHLINK_PREFIX}{encoded}"

    @classmethod
    def from_shlink_uri(cls, uri: str) -> SmartHealthLink:
        if not uri.startswith(SHLINK_PREFIX):
            raise ValueError("Not a shlink:/ URI")
        encoded = uri[len(SHLINK_PREFIX):]
        padded = encoded + "=" * (-len(encoded) % 4)
        return cls.model_validate_json(base64.urlsafe_b64decode(padded))


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ErrorResponse(BaseModel):
    detail: str


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "healthy"
    environment: str
    database: str = "connected"
