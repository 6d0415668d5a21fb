import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from perunckb.account import CURVE_ORDER, Account, new_account
from perunckb.address import new_default_participant
from perunckb.signature import PADDED_SIGNATURE_LENGTH, remove_padding


def test_key_one_gives_generator_point():
    acc = Account(ec.derive_private_key(1, ec.SECP256K1()))
    assert acc.address().compressed_sec1().hex() == (
        "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
    )


def test_address_is_default_participant():
    acc = new_account()
    assert acc.address() == new_default_participant(acc.public_key)
    assert acc.address().payment_script == acc.address().unlock_script


def test_signature_is_padded_der_with_low_s():
    acc = new_account()
    for i in range(20):
        sig = acc.sign_data(b"message %d" % i)
        assert len(sig) == PADDED_SIGNATURE_LENGTH
        der = remove_padding(sig)
        assert der[0] == 0x30
        _, s = decode_dss_signature(der)
        assert s <= CURVE_ORDER // 2


def test_distinct_accounts_have_distinct_addresses():
    keys = {new_account().address().compressed_sec1() for _ in range(5)}
    assert len(keys) == 5


def test_rejects_other_curves():
    with pytest.raises(ValueError):
        Account(ec.generate_private_key(ec.SECP256R1()))