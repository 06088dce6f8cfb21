"""
Error taxonomy for health link issuance and retrieval.

ValidationError is always client-caused and carries a message that is safe
to return to the caller. CryptoError and StorageError are server-side
faults; their messages never include key material, plaintext, or paths.
"""


class HealthLinkError(Exception):
    """Base class for all health link failures."""


class ValidationError(HealthLinkError):
    """The submitted bundle is malformed or incomplete."""


class CryptoError(HealthLinkError):
    """Authenticated decryption failed."""


class StorageError(HealthLinkError):
    """The blob store or submission store could not complete an operation."""
