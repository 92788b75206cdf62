"""
Wire codecs for ciphertexts stored on-chain as `bytes`.

- Paillier: a single integer, fixed-width big-endian hex (width of n^2), "0x" prefixed
- EC-ElGamal: C1.x | C1.y | C2.x | C2.y, each a 32-byte big-endian field element (128 bytes)
"""
from typing import Union

from erps.errors import MalformedCiphertextError
from erps.service.crypto.curve import CurveParams, ECPoint, INFINITY, is_on_curve
from erps.service.crypto.elgamal import ElGamalCiphertext, ElGamalPublicKey
from erps.service.crypto.paillier import PaillierPublicKey

FIELD_ELEMENT_BYTES = 32
ELGAMAL_CIPHERTEXT_BYTES = 4 * FIELD_ELEMENT_BYTES


def hex_to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = value[2:] if value.startswith(("0x", "0X")) else value
    if len(text) % 2:
        text = "0" + text
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise MalformedCiphertextError(f"Invalid hex encoding: {e}") from e


def bytes_to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def is_empty_cipher(value: Union[str, bytes, None]) -> bool:
    """The contract returns empty bytes ("0x") for fields not yet written"""
    if value is None:
        return True
    return len(hex_to_bytes(value)) == 0


# ============================================================================
# Paillier
# ============================================================================

def paillier_ciphertext_width(public_key: PaillierPublicKey) -> int:
    """Number of bytes needed for any value in [0, n^2)"""
    return (public_key.n_square.bit_length() + 7) // 8


def encode_paillier_ciphertext(c: int, public_key: PaillierPublicKey) -> str:
    if not (0 <= c < public_key.n_square):
        raise MalformedCiphertextError("Ciphertext must be in the range [0, N^2-1]")
    return bytes_to_hex(c.to_bytes(paillier_ciphertext_width(public_key), "big"))


def decode_paillier_ciphertext(value: Union[str, bytes], public_key: PaillierPublicKey) -> int:
    data = hex_to_bytes(value)
    if not data:
        raise MalformedCiphertextError("Empty Paillier ciphertext")
    c = int.from_bytes(data, "big")
    if not (0 < c < public_key.n_square):
        raise MalformedCiphertextError("Ciphertext must be in the range [1, N^2-1]")
    return c


# ============================================================================
# EC-ElGamal
# ============================================================================

def encode_point(point: ECPoint) -> bytes:
    return point.x.to_bytes(FIELD_ELEMENT_BYTES, "big") + point.y.to_bytes(FIELD_ELEMENT_BYTES, "big")


def decode_point(data: bytes, curve: CurveParams) -> ECPoint:
    if len(data) != 2 * FIELD_ELEMENT_BYTES:
        raise MalformedCiphertextError(f"Point must be {2 * FIELD_ELEMENT_BYTES} bytes, got {len(data)}")
    point = ECPoint(
        int.from_bytes(data[:FIELD_ELEMENT_BYTES], "big"),
        int.from_bytes(data[FIELD_ELEMENT_BYTES:], "big"),
    )
    if point == INFINITY:
        return INFINITY
    if not is_on_curve(point, curve):
        raise MalformedCiphertextError(f"Point ({hex(point.x)}, {hex(point.y)}) is not on {curve.name}")
    return point


def encode_elgamal_ciphertext(ciphertext: ElGamalCiphertext) -> str:
    return bytes_to_hex(encode_point(ciphertext.c1) + encode_point(ciphertext.c2))


def decode_elgamal_ciphertext(value: Union[str, bytes], public_key: ElGamalPublicKey) -> ElGamalCiphertext:
    data = hex_to_bytes(value)
    if len(data) != ELGAMAL_CIPHERTEXT_BYTES:
        raise MalformedCiphertextError(
            f"EC-ElGamal ciphertext must be {ELGAMAL_CIPHERTEXT_BYTES} bytes, got {len(data)}"
        )
    half = 2 * FIELD_ELEMENT_BYTES
    return ElGamalCiphertext(
        c1=decode_point(data[:half], public_key.curve),
        c2=decode_point(data[half:], public_key.curve),
    )
