import pytest

from perunckb.account import new_account
from perunckb.address import Participant, zero_address
from perunckb.backend import verify_signature
from perunckb.signature import PADDED_SIGNATURE_LENGTH
from perunckb.wallet import EphemeralWallet, WalletError


def test_ephemeral_wallet():
    w = EphemeralWallet()
    acc = w.add_new_account()
    unlocked = w.unlock(acc.address())
    assert unlocked.address() == acc.address()
    msg = b"hello world"
    sig = unlocked.sign_data(msg)
    assert verify_signature(msg, sig, acc.address()) is True


def test_address_marshalling_and_equality():
    w = EphemeralWallet()
    acc = w.add_new_account()
    other = new_account()
    marshalled = other.address().to_bytes()
    decoded = Participant.from_bytes(marshalled)
    assert decoded == other.address()
    assert decoded.to_bytes() == marshalled
    assert acc.address() != zero_address()
    assert acc.address() != other.address()


def test_generic_signature_size():
    w = EphemeralWallet()
    acc = w.unlock(w.add_new_account().address())
    for i in range(50):
        assert len(acc.sign_data(b"pls sign me %d" % i)) == PADDED_SIGNATURE_LENGTH


def test_account_with_wallet_and_backend():
    w = EphemeralWallet()
    acc = w.unlock(w.add_new_account().address())
    data = b"pls sign me"
    sig = acc.sign_data(data)
    assert verify_signature(data, sig, acc.address()) is True
    tampered = bytearray(sig)
    tampered[10] ^= 0x01
    try:
        result = verify_signature(data, bytes(tampered), acc.address())
    except ValueError:
        result = False
    assert result is False
    assert verify_signature(data, sig, new_account().address()) is False


def test_unlock_unknown_account():
    w = EphemeralWallet()
    with pytest.raises(WalletError, match="account not found"):
        w.unlock(new_account().address())


def test_unlock_non_participant():
    with pytest.raises(WalletError):
        EphemeralWallet().unlock("address")


def test_add_account_twice():
    w = EphemeralWallet()
    acc = new_account()
    w.add_account(acc)
    with pytest.raises(WalletError, match="already exists"):
        w.add_account(acc)
    assert w.unlock(acc.address()) is acc


def test_lock_all_keeps_accounts_usable():
    w = EphemeralWallet()
    acc = w.add_new_account()
    w.increment_usage(acc.address())
    w.decrement_usage(acc.address())
    w.lock_all()
    assert w.unlock(acc.address()) is acc