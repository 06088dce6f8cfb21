"""
JSON schema for the FHIR Bundle accepted by the health link endpoint.

Only the envelope is described here: a Bundle whose entries each wrap a
resource object. Resource-level checks (Patient, DocumentReference,
attachment content) are done by the bundle extractor so that each failure
gets its own message.
"""

FHIR_BUNDLE_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "FHIR Bundle (health link submission)",
    "type": "object",
    "required": ["resourceType", "entry"],
    "properties": {
        "resourceType": {
            "type": "string",
            "const": "Bundle",
            "description": "Must be 'Bundle' per FHIR spec.",
        },
        "type": {
            "type": "string",
            "description": "Bundle type; only 'collection' is accepted downstream.",
        },
        "entry": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "fullUrl": {"type": "string"},
                    "resource": {
                        "type": "object",
                        "required": ["resourceType"],
                        "properties": {"resourceType": {"type": "string"}},
                    },
                },
            },
        },
    },
}


# Media types used on the wire
FHIR_JSON_MEDIA_TYPE = "application/fhir+json"
PDF_MEDIA_TYPE = "application/pdf"
