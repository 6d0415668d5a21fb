import pytest

from perunckb.signature import (
    PADDED_SIGNATURE_LENGTH,
    SignatureError,
    pad_der_encoded_signature,
    remove_padding,
)


def test_pad_seventy_bytes():
    sig = bytes(range(1, 71))
    padded = pad_der_encoded_signature(sig)
    assert len(padded) == PADDED_SIGNATURE_LENGTH
    assert padded[:70] == sig
    assert padded[70:] == b"\xff\x00\x00"


def test_pad_seventy_two_bytes_adds_only_marker():
    sig = b"\x30" * 72
    padded = pad_der_encoded_signature(sig)
    assert padded == sig + b"\xff"


def test_pad_rejects_long_signature():
    with pytest.raises(SignatureError):
        pad_der_encoded_signature(b"\x01" * 73)


@pytest.mark.parametrize("length", [0, 1, 8, 64, 70, 71, 72])
def test_round_trip(length):
    sig = bytes([0x30]) * length
    assert remove_padding(pad_der_encoded_signature(sig)) == sig


def test_round_trip_keeps_marker_bytes_inside_signature():
    sig = b"\x30\xff\x00\xff\x00"
    assert remove_padding(pad_der_encoded_signature(sig)) == sig


def test_remove_padding_wrong_length():
    with pytest.raises(SignatureError):
        remove_padding(b"\xff" * 72)


def test_remove_padding_nonzero_tail():
    with pytest.raises(SignatureError, match="invalid padding"):
        remove_padding(b"\x30" * 70 + b"\xff\x00\x01")


def test_remove_padding_missing_marker():
    with pytest.raises(SignatureError, match="missing marker"):
        remove_padding(bytes(PADDED_SIGNATURE_LENGTH))


def test_signature_error_is_value_error():
    with pytest.raises(ValueError):
        remove_padding(b"")