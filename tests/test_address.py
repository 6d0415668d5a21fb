import pytest

from perunckb.address import (
    COMPRESSED_PUBLIC_KEY_LENGTH,
    SECP256K1_BLAKE160_SIGHASH_ALL_CODE_HASH,
    Participant,
    PublicKey,
    as_participant,
    new_default_participant,
    pack_sec1_encoded_pubkey,
    secp256k1_blake160_sighash_all,
    unpack_sec1_encoded_pubkey,
    zero_address,
)
from perunckb.molecule import unpack_table
from perunckb.types import HashType, Network, Script, blake160

G_COMPRESSED = bytes.fromhex("0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")
G_UNCOMPRESSED = bytes.fromhex(
    "0479be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
    "483ada7726a3c4655da4fbfc0e1108a8fd17b448a68554199c47d08ffb10d4b8"
)
NEG_G_COMPRESSED = b"\x03" + G_COMPRESSED[1:]


@pytest.fixture
def key():
    return PublicKey.from_bytes(G_COMPRESSED)


def _participant(pub_key, fill=0x22):
    return Participant(
        pub_key,
        Script(bytes([fill]) * 32, HashType.TYPE, b"pay"),
        Script(bytes([fill + 1]) * 32, HashType.DATA, b"unlock"),
    )


def test_decompress_generator(key):
    assert key.uncompressed() == G_UNCOMPRESSED
    assert key.compressed() == G_COMPRESSED


def test_uncompressed_parse_round_trip(key):
    assert PublicKey.from_bytes(G_UNCOMPRESSED) == key


def test_negated_point_has_odd_prefix(key):
    negated = PublicKey.from_bytes(NEG_G_COMPRESSED)
    assert negated.x == key.x
    assert negated.y != key.y
    assert negated.compressed() == NEG_G_COMPRESSED


def test_from_bytes_rejects_off_curve():
    bad = bytearray(G_UNCOMPRESSED)
    bad[-1] ^= 1
    with pytest.raises(ValueError):
        PublicKey.from_bytes(bytes(bad))


def test_from_bytes_rejects_bad_length():
    with pytest.raises(ValueError):
        PublicKey.from_bytes(G_COMPRESSED[:-1])


def test_default_participant_uses_sighash_all(key):
    participant = new_default_participant(key)
    assert participant.payment_script == participant.unlock_script
    script = participant.payment_script
    assert script.code_hash == SECP256K1_BLAKE160_SIGHASH_ALL_CODE_HASH
    assert script.hash_type is HashType.TYPE
    assert script.args == blake160(G_COMPRESSED)
    assert secp256k1_blake160_sighash_all(key) == script


def test_default_participant_requires_key():
    with pytest.raises(ValueError):
        new_default_participant(None)


def test_participant_binary_round_trip(key):
    participant = _participant(key)
    assert Participant.from_bytes(participant.to_bytes()) == participant


def test_participant_string_is_compressed_hex(key):
    assert str(_participant(key)) == G_COMPRESSED.hex()


def test_sec1_accessors(key):
    participant = _participant(key)
    assert participant.compressed_sec1() == G_COMPRESSED
    assert participant.uncompressed_sec1() == G_UNCOMPRESSED


def test_pack_on_chain_holds_script_hashes(key):
    participant = _participant(key)
    pub, payment_hash, unlock_hash = unpack_table(participant.pack_on_chain(), 3)
    assert pub == G_COMPRESSED
    assert payment_hash == participant.payment_script.hash()
    assert unlock_hash == participant.unlock_script.hash()


def test_equality_depends_on_scripts(key):
    assert _participant(key) == _participant(key)
    assert _participant(key) != _participant(key, fill=0x40)
    assert _participant(key) != _participant(PublicKey.from_bytes(NEG_G_COMPRESSED))


def test_zero_address():
    zero = zero_address()
    assert zero == zero_address()
    assert zero.compressed_sec1() == b"\x02" + bytes(32)
    assert zero.payment_script.hash_type is HashType.DATA


def test_to_ckb_address(key):
    participant = _participant(key)
    address = participant.to_ckb_address(Network.TESTNET)
    assert address.script == participant.payment_script
    assert address.network is Network.TESTNET


def test_sec1_pack_round_trip(key):
    packed = pack_sec1_encoded_pubkey(key)
    assert len(packed) == COMPRESSED_PUBLIC_KEY_LENGTH
    assert unpack_sec1_encoded_pubkey(packed) == key


def test_sec1_errors():
    with pytest.raises(ValueError):
        pack_sec1_encoded_pubkey(None)
    with pytest.raises(ValueError):
        unpack_sec1_encoded_pubkey(None)
    with pytest.raises(ValueError, match="invalid public key length"):
        unpack_sec1_encoded_pubkey(G_UNCOMPRESSED)


def test_as_participant(key):
    participant = _participant(key)
    assert as_participant(participant) is participant
    with pytest.raises(TypeError):
        as_participant("not a participant")