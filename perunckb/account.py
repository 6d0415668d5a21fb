"""Accounts holding a secp256k1 private key that sign channel data."""

from __future__ import annotations

import hashlib

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)

from perunckb.address import Participant, PublicKey, new_default_participant
from perunckb.signature import pad_der_encoded_signature

# Order of the secp256k1 group.
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# The digest is 32 bytes long; the algorithm only labels its size.
_PREHASHED = ec.ECDSA(Prehashed(hashes.SHA256()))


def message_hash(data: bytes) -> bytes:
    """Unkeyed Blake2b-256 digest that signatures are made over."""
    return hashlib.blake2b(bytes(data), digest_size=32).digest()


class Account:
    """A wallet account backed by a secp256k1 private key."""

    def __init__(self, key: ec.EllipticCurvePrivateKey) -> None:
        if not isinstance(key.curve, ec.SECP256K1):
            raise ValueError("account keys must be on the secp256k1 curve")
        self._key = key

    @property
    def public_key(self) -> PublicKey:
        numbers = self._key.public_key().public_numbers()
        return PublicKey(numbers.x, numbers.y)

    def address(self) -> Participant:
        """The participant paid and unlocked by the default sighash-all script."""
        return new_default_participant(self.public_key)

    def sign_data(self, data: bytes) -> bytes:
        """Sign the Blake2b-256 hash of ``data``; returns a padded DER signature."""
        der = self._key.sign(message_hash(data), _PREHASHED)
        r, s = decode_dss_signature(der)
        if s > CURVE_ORDER // 2:
            s = CURVE_ORDER - s
        return pad_der_encoded_signature(encode_dss_signature(r, s))


def new_account() -> Account:
    """Create an account with a freshly generated private key."""
    return Account(ec.generate_private_key(ec.SECP256K1()))