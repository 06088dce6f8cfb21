"""
At-rest envelope encryption for health link artifacts.

Each submission gets its own random 256-bit key. The bundle and the PDF are
sealed separately with AES-256-GCM, each under a fresh 12-byte nonce, and
the nonce and 16-byte tag are stored alongside the submission record rather
than prefixed to the ciphertext.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from healthlink_api.errors import CryptoError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


@dataclass(frozen=True)
class SealedBox:
    ciphertext: bytes
    nonce: bytes
    tag: bytes


class EnvelopeCipher:
    """AES-256-GCM with detached nonce and tag. Holds no state."""

    @staticmethod
    def generate_key() -> bytes:
        """Generate a random AES-256 key for a single submission."""
        return AESGCM.generate_key(bit_length=KEY_SIZE * 8)

    def seal(self, plaintext: bytes, key: bytes) -> SealedBox:
        """Encrypt plaintext under key with a fresh random nonce."""
        if len(key) != KEY_SIZE:
            raise ValueError(f"Key must be {KEY_SIZE} bytes")
        nonce = os.urandom(NONCE_SIZE)
        # AESGCM appends the tag to the ciphertext
        sealed = AESGCM(key).encrypt(nonce, plaintext, None)
        return SealedBox(ciphertext=sealed[:-TAG_SIZE], nonce=nonce, tag=sealed[-TAG_SIZE:])

    def open(self, ciphertext: bytes, key: bytes, nonce: bytes, tag: bytes) -> bytes:
        """Verify and decrypt. Raises CryptoError on any mismatch."""
        if len(key) != KEY_SIZE or len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
            raise CryptoError("authentication failed")
        try:
            return AESGCM(key).decrypt(nonce, ciphertext + tag, None)
        except InvalidTag:
            raise CryptoError("authentication failed") from None
