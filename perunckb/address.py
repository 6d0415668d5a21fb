"""Channel participants identified by a secp256k1 key and CKB scripts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from perunckb.molecule import pack_table, unpack_table
from perunckb.types import Address, HashType, Network, Script, blake160

UNCOMPRESSED_PUBLIC_KEY_LENGTH = 65
COMPRESSED_PUBLIC_KEY_LENGTH = 33

SECP256K1_BLAKE160_SIGHASH_ALL_CODE_HASH = bytes.fromhex(
    "9bd7e06f3ecf4be0f2fcd2188b23f1b9fcc88e5d4b65a8637b17723bbda3cce8"
)

_FIELD_PRIME = 2**256 - 2**32 - 977
_CURVE_B = 7


def _on_curve(x: int, y: int) -> bool:
    return (y * y - pow(x, 3, _FIELD_PRIME) - _CURVE_B) % _FIELD_PRIME == 0


@dataclass(frozen=True)
class PublicKey:
    """A secp256k1 public key given by its affine coordinates."""

    x: int
    y: int

    @classmethod
    def from_bytes(cls, data: bytes) -> PublicKey:
        """Parse a compressed or uncompressed SEC1 encoded key."""
        data = bytes(data)
        if len(data) == COMPRESSED_PUBLIC_KEY_LENGTH and data[0] in (0x02, 0x03):
            x = int.from_bytes(data[1:], "big")
            if x >= _FIELD_PRIME:
                raise ValueError("public key x coordinate out of range")
            rhs = (pow(x, 3, _FIELD_PRIME) + _CURVE_B) % _FIELD_PRIME
            y = pow(rhs, (_FIELD_PRIME + 1) // 4, _FIELD_PRIME)
            if y * y % _FIELD_PRIME != rhs:
                raise ValueError("public key is not on the secp256k1 curve")
            if (y & 1) != (data[0] & 1):
                y = _FIELD_PRIME - y
            return cls(x, y)
        if len(data) == UNCOMPRESSED_PUBLIC_KEY_LENGTH and data[0] == 0x04:
            x = int.from_bytes(data[1:33], "big")
            y = int.from_bytes(data[33:], "big")
            if x >= _FIELD_PRIME or y >= _FIELD_PRIME or not _on_curve(x, y):
                raise ValueError("public key is not on the secp256k1 curve")
            return cls(x, y)
        raise ValueError("malformed SEC1 public key")

    def compressed(self) -> bytes:
        """Compressed SEC1 encoding (33 bytes)."""
        return bytes([0x02 | (self.y & 1)]) + self.x.to_bytes(32, "big")

    def uncompressed(self) -> bytes:
        """Uncompressed SEC1 encoding (65 bytes)."""
        return b"\x04" + self.x.to_bytes(32, "big") + self.y.to_bytes(32, "big")


def secp256k1_blake160_sighash_all(pub_key: Optional[PublicKey]) -> Script:
    """The default secp256k1_blake160_sighash_all lock script for a key."""
    if pub_key is None:
        raise ValueError("public key is nil")
    return Script(
        SECP256K1_BLAKE160_SIGHASH_ALL_CODE_HASH,
        HashType.TYPE,
        blake160(pub_key.compressed()),
    )


@dataclass(frozen=True)
class Participant:
    """A channel participant with its key, payment script and unlock script."""

    pub_key: PublicKey
    payment_script: Script
    unlock_script: Script

    def __str__(self) -> str:
        return self.pub_key.compressed().hex()

    def to_bytes(self) -> bytes:
        """Binary form: the off-chain participant encoding."""
        return self.pack_off_chain()

    @classmethod
    def from_bytes(cls, data: bytes) -> Participant:
        """Decode an off-chain participant encoding."""
        key, payment, unlock = unpack_table(data, 3)
        return cls(unpack_sec1_encoded_pubkey(key), Script.unpack(payment), Script.unpack(unlock))

    def compressed_sec1(self) -> bytes:
        return self.pub_key.compressed()

    def uncompressed_sec1(self) -> bytes:
        return self.pub_key.uncompressed()

    def pack_off_chain(self) -> bytes:
        """Off-chain encoding: key and both full scripts."""
        return pack_table(
            [
                pack_sec1_encoded_pubkey(self.pub_key),
                self.payment_script.pack(),
                self.unlock_script.pack(),
            ]
        )

    def pack_on_chain(self) -> bytes:
        """On-chain encoding: key and the hashes of both scripts."""
        return pack_table(
            [
                pack_sec1_encoded_pubkey(self.pub_key),
                self.payment_script.hash(),
                self.unlock_script.hash(),
            ]
        )

    def to_ckb_address(self, network: Network) -> Address:
        """A CKB address paying to this participant's payment script."""
        return Address(self.payment_script, network)


def new_default_participant(pub_key: Optional[PublicKey]) -> Participant:
    """A participant paid and unlocked by the default sighash-all script."""
    script = secp256k1_blake160_sighash_all(pub_key)
    return Participant(pub_key, script, script)


def zero_address() -> Participant:
    """The zero participant, whose key has both coordinates zero."""
    empty = Script(bytes(32), HashType.DATA, b"")
    return Participant(PublicKey(0, 0), empty, empty)


def pack_sec1_encoded_pubkey(pub_key: Optional[PublicKey]) -> bytes:
    """Molecule SEC1 encoded key: the 33 compressed bytes."""
    if pub_key is None:
        raise ValueError("public key is nil")
    return pub_key.compressed()


def unpack_sec1_encoded_pubkey(data: Optional[bytes]) -> PublicKey:
    """Parse a molecule SEC1 encoded (compressed) public key."""
    if data is None:
        raise ValueError("public key is nil")
    if len(data) != COMPRESSED_PUBLIC_KEY_LENGTH:
        raise ValueError("invalid public key length")
    return PublicKey.from_bytes(data)


def as_participant(address: Any) -> Participant:
    """Return ``address`` as a participant or raise TypeError."""
    if not isinstance(address, Participant):
        raise TypeError("address is not participant")
    return address