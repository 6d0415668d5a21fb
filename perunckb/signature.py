"""Fixed-length padding for DER encoded secp256k1 signatures.

A DER signature is at most 72 bytes long. It is padded to
PADDED_SIGNATURE_LENGTH bytes by appending one MARKER_BYTE followed by as
many ZERO_BYTEs as needed.
"""

from __future__ import annotations

PADDED_SIGNATURE_LENGTH = 73
MARKER_BYTE = 0xFF
ZERO_BYTE = 0x00


class SignatureError(ValueError):
    """Raised for signatures that cannot be padded or unpadded."""


def pad_der_encoded_signature(sig: bytes) -> bytes:
    """Pad a DER encoded signature to PADDED_SIGNATURE_LENGTH bytes."""
    if len(sig) >= PADDED_SIGNATURE_LENGTH:
        raise SignatureError(
            f"signature is too long. Expected at most {PADDED_SIGNATURE_LENGTH - 1} bytes, "
            f"got {len(sig)} bytes"
        )
    zeros = PADDED_SIGNATURE_LENGTH - len(sig) - 1
    return bytes(sig) + bytes([MARKER_BYTE]) + bytes([ZERO_BYTE]) * zeros


def remove_padding(sig: bytes) -> bytes:
    """Return the DER encoded signature inside a padded signature."""
    if len(sig) != PADDED_SIGNATURE_LENGTH:
        raise SignatureError(
            f"signature is of wrong length. Expected {PADDED_SIGNATURE_LENGTH} bytes, "
            f"got {len(sig)} bytes"
        )
    for position in reversed(range(len(sig))):
        if sig[position] == MARKER_BYTE:
            return bytes(sig[:position])
        if sig[position] != ZERO_BYTE:
            raise SignatureError("invalid padding")
    raise SignatureError("invalid padding: missing marker")