"""
Recipient-facing JWE tokens.

Retrieval answers with a JWE compact serialization using direct key
agreement ("dir"): the submission's 256-bit key is the content encryption
key, so the encrypted-key segment is empty and a SMART Health Link holder
can decrypt with the key from the link payload alone.
"""

from __future__ import annotations

from jose import jwe
from jose.constants import ALGORITHMS
from jose.exceptions import JOSEError

from healthlink_api.errors import CryptoError


def build_token(plaintext: bytes, key: bytes, content_type: str) -> str:
    """Encrypt plaintext as a compact JWE with a 'cty' header."""
    token = jwe.encrypt(
        plaintext,
        key,
        encryption=ALGORITHMS.A256GCM,
        algorithm=ALGORITHMS.DIR,
        cty=content_type,
    )
    return token.decode("ascii") if isinstance(token, bytes) else token


def read_token(token: str, key: bytes) -> bytes:
    """Decrypt a compact JWE produced by build_token."""
    try:
        plaintext = jwe.decrypt(token, key)
    except JOSEError:
        raise CryptoError("authentication failed") from None
    if plaintext is None:
        raise CryptoError("authentication failed")
    return plaintext


def token_header(token: str) -> dict:
    """Return the protected header without decrypting."""
    return jwe.get_unverified_header(token)
