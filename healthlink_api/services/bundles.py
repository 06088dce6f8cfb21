"""
FHIR Bundle extraction for health link issuance.

Takes the raw request text and pulls out the three things issuance needs:
the bundle text to encrypt, a display label for the patient, and the bytes
of the attached PDF. Every rejection raises ValidationError with a short
message naming the missing or invalid element.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any

from healthlink_api.errors import ValidationError
from healthlink_api.schemas.fhir import FHIR_BUNDLE_SCHEMA, PDF_MEDIA_TYPE
from healthlink_api.services.validation import validate_against_schema

logger = logging.getLogger(__name__)

UNKNOWN_PATIENT = "Unknown Patient"


@dataclass(frozen=True)
class ExtractedBundle:
    bundle_json: str
    subject_label: str
    document_bytes: bytes


def extract_bundle(raw_bundle: str) -> ExtractedBundle:
    """Validate a FHIR collection Bundle and decompose it for encryption."""
    try:
        bundle = json.loads(raw_bundle)
    except (json.JSONDecodeError, RecursionError):
        raise ValidationError("invalid json") from None

    try:
        errors = validate_against_schema(bundle, FHIR_BUNDLE_SCHEMA)
    except RecursionError:
        raise ValidationError("invalid bundle: nesting too deep") from None
    if errors:
        raise ValidationError(f"invalid bundle: {errors[0]}")

    if bundle.get("type") != "collection":
        raise ValidationError("not a collection")

    patient = _first_resource(bundle, "Patient")
    if patient is None:
        raise ValidationError("missing subject")

    doc_ref = _first_resource(bundle, "DocumentReference")
    if doc_ref is None:
        raise ValidationError("missing document reference")

    document_bytes = _attachment_bytes(doc_ref)
    label = subject_label(patient)
    logger.info("Extracted bundle with %d entries, document %d bytes", len(bundle["entry"]), len(document_bytes))
    return ExtractedBundle(
        bundle_json=raw_bundle,
        subject_label=label,
        document_bytes=document_bytes,
    )


def subject_label(patient: dict[str, Any]) -> str:
    """'<first given> <family>' from the patient's first HumanName."""
    names = patient.get("name") or []
    if not isinstance(names, list) or not names or not isinstance(names[0], dict):
        return UNKNOWN_PATIENT

    name = names[0]
    given = name.get("given") or []
    first_given = given[0] if isinstance(given, list) and given else ""
    family = name.get("family") or ""
    label = f"{first_given} {family}".strip()
    return label or UNKNOWN_PATIENT


def _first_resource(bundle: dict[str, Any], resource_type: str) -> dict[str, Any] | None:
    for entry in bundle["entry"]:
        resource = entry.get("resource")
        if resource and resource.get("resourceType") == resource_type:
            return resource
    return None


def _attachment_bytes(doc_ref: dict[str, Any]) -> bytes:
    content = doc_ref.get("content") or []
    first = content[0] if isinstance(content, list) and content else {}
    attachment = first.get("attachment") if isinstance(first, dict) else None
    if not attachment or not isinstance(attachment, dict):
        raise ValidationError("missing attachment")

    if attachment.get("contentType") != PDF_MEDIA_TYPE:
        raise ValidationError("unsupported content type")

    data = attachment.get("data")
    if not data:
        raise ValidationError("missing data")

    # base64Binary may be MIME-wrapped
    try:
        return base64.b64decode("".join(data.split()), validate=True)
    except (AttributeError, binascii.Error, TypeError, ValueError):
        raise ValidationError("invalid attachment data") from None
