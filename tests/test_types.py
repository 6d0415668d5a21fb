import pytest

from perunckb.molecule import pack_table
from perunckb.types import (
    SHANNONS_PER_CKBYTE,
    Address,
    CellOutput,
    HashType,
    Network,
    OutPoint,
    Script,
    blake160,
    ckb_hash,
)


def _script(args=b"\x01" * 20, hash_type=HashType.TYPE, fill=0xAB):
    return Script(bytes([fill]) * 32, hash_type, args)


def test_ckb_hash_of_empty_input():
    assert ckb_hash(b"").hex() == "44f4c69744d5f8c55d642062949dcae49bc4e7ef43d388c5a12f42b5633d163e"


def test_blake160_is_hash_prefix():
    data = b"some data"
    assert len(blake160(data)) == 20
    assert ckb_hash(data).startswith(blake160(data))


@pytest.mark.parametrize("hash_type", list(HashType))
def test_script_round_trip(hash_type):
    script = _script(hash_type=hash_type)
    assert Script.unpack(script.pack()) == script


def test_script_hash_is_hash_of_packing():
    script = _script()
    assert script.hash() == ckb_hash(script.pack())
    assert script.hash() != _script(args=b"").hash()


def test_script_rejects_short_code_hash():
    with pytest.raises(ValueError):
        Script(b"\x00" * 31, HashType.DATA)


def test_script_unpack_rejects_unknown_hash_type():
    packed = pack_table([bytes(32), b"\x09", b"\x00\x00\x00\x00"])
    with pytest.raises(ValueError):
        Script.unpack(packed)


def test_script_unpack_rejects_garbage():
    with pytest.raises(ValueError):
        Script.unpack(b"\x01\x02\x03")


def test_script_occupied_capacity_grows_with_args():
    assert _script(args=b"abcd").occupied_capacity() - _script(args=b"").occupied_capacity() == 4


def test_cell_occupied_capacity_grows_with_data():
    cell = CellOutput(0, _script())
    assert cell.occupied_capacity(b"abc") - cell.occupied_capacity(b"") == 3 * SHANNONS_PER_CKBYTE


def test_cell_occupied_capacity_counts_type_script():
    lock = _script()
    type_script = _script(args=b"xyz", fill=0x11)
    plain = CellOutput(0, lock)
    typed = CellOutput(0, lock, type_script)
    difference = typed.occupied_capacity(b"") - plain.occupied_capacity(b"")
    assert difference == type_script.occupied_capacity() * SHANNONS_PER_CKBYTE


def test_outpoint_usable_as_key():
    first = OutPoint(b"\x01" * 32, 3)
    lookup = {first: "cell"}
    assert lookup[OutPoint(b"\x01" * 32, 3)] == "cell"
    assert OutPoint(b"\x01" * 32, 4) not in lookup


def test_address_holds_script_and_network():
    script = _script()
    address = Address(script, Network.TESTNET)
    assert address.script == script
    assert address.network is Network.TESTNET