from __future__ import annotations

import pytest

from erps.errors import MalformedCiphertextError
from erps.service.crypto import elgamal, paillier
from erps.service.crypto.curve import INFINITY, ECPoint
from erps.service.crypto.serialization import (
    ELGAMAL_CIPHERTEXT_BYTES,
    decode_elgamal_ciphertext,
    decode_paillier_ciphertext,
    decode_point,
    encode_elgamal_ciphertext,
    encode_paillier_ciphertext,
    encode_point,
    hex_to_bytes,
    is_empty_cipher,
    paillier_ciphertext_width,
)


def test_hex_helpers():
    assert hex_to_bytes("0x0102") == b"\x01\x02"
    assert hex_to_bytes("abc") == b"\x0a\xbc"
    assert is_empty_cipher("0x")
    assert is_empty_cipher(None)
    assert not is_empty_cipher("0x00")
    with pytest.raises(MalformedCiphertextError):
        hex_to_bytes("0xzz")


def test_paillier_encoding_is_fixed_width(paillier_keys):
    public_key, _ = paillier_keys
    width = paillier_ciphertext_width(public_key)
    small = encode_paillier_ciphertext(5, public_key)
    assert len(small) == 2 + 2 * width
    assert decode_paillier_ciphertext(small, public_key) == 5

    c = paillier.encrypt(1, public_key)
    assert decode_paillier_ciphertext(encode_paillier_ciphertext(c, public_key), public_key) == c


def test_paillier_decoding_rejects_out_of_range(paillier_keys):
    public_key, _ = paillier_keys
    with pytest.raises(MalformedCiphertextError):
        decode_paillier_ciphertext("0x", public_key)
    with pytest.raises(MalformedCiphertextError):
        decode_paillier_ciphertext(hex(public_key.n_square), public_key)


def test_elgamal_layout(elgamal_keys):
    public_key, _ = elgamal_keys
    ct = elgamal.encrypt(1, public_key)
    encoded = encode_elgamal_ciphertext(ct)
    data = hex_to_bytes(encoded)
    assert len(data) == ELGAMAL_CIPHERTEXT_BYTES
    assert int.from_bytes(data[:32], "big") == ct.c1.x
    assert int.from_bytes(data[96:], "big") == ct.c2.y
    assert decode_elgamal_ciphertext(encoded, public_key) == ct


def test_elgamal_decoding_rejects_bad_input(elgamal_keys):
    public_key, _ = elgamal_keys
    with pytest.raises(MalformedCiphertextError):
        decode_elgamal_ciphertext("0x" + "00" * 64, public_key)
    off_curve = encode_point(ECPoint(1, 3)) + encode_point(public_key.G)
    with pytest.raises(MalformedCiphertextError):
        decode_elgamal_ciphertext(off_curve, public_key)


def test_infinity_point_encoding(elgamal_keys):
    public_key, _ = elgamal_keys
    assert decode_point(encode_point(INFINITY), public_key.curve) == INFINITY
