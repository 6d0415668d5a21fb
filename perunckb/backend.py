"""Wallet backend: address creation, signature decoding and verification."""

from __future__ import annotations

from typing import Any, BinaryIO

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, decode_dss_signature

from perunckb.account import message_hash
from perunckb.address import Participant, as_participant, zero_address
from perunckb.signature import PADDED_SIGNATURE_LENGTH, remove_padding

_PREHASHED = ec.ECDSA(Prehashed(hashes.SHA256()))


def new_address() -> Participant:
    """A placeholder participant; decode real ones with Participant.from_bytes."""
    return zero_address()


def decode_sig(reader: BinaryIO) -> bytes:
    """Read one padded signature of PADDED_SIGNATURE_LENGTH bytes from ``reader``."""
    chunks = []
    remaining = PADDED_SIGNATURE_LENGTH
    while remaining:
        chunk = reader.read(remaining)
        if not chunk:
            raise EOFError(
                f"expected {PADDED_SIGNATURE_LENGTH} signature bytes, "
                f"got {PADDED_SIGNATURE_LENGTH - remaining}"
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def verify_signature(msg: bytes, sig: bytes, address: Any) -> bool:
    """Check a padded signature over the plain ``msg`` against ``address``'s key."""
    participant = as_participant(address)
    der = remove_padding(sig)
    try:
        r, s = decode_dss_signature(der)
    except ValueError as exc:
        raise ValueError(f"parsing DER signature: {exc}") from exc
    try:
        public_key = ec.EllipticCurvePublicNumbers(
            participant.pub_key.x, participant.pub_key.y, ec.SECP256K1()
        ).public_key()
    except ValueError as exc:
        raise ValueError(f"invalid public key: {exc}") from exc
    try:
        public_key.verify(der, message_hash(msg), _PREHASHED)
    except InvalidSignature:
        return False
    return True