"""
EC-ElGamal over BN254.

A plaintext m is encoded as the point m*G, so ciphertexts add homomorphically.
Decryption recovers m*G and then searches a small, explicit candidate list for
the matching scalar; anything outside that list is rejected.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from erps.errors import DiscreteLogNotFoundError
from erps.service.crypto.arithmetic import random_in_range
from erps.service.crypto.curve import (
    BN254,
    CurveParams,
    ECPoint,
    ec_add,
    ec_mul,
    ec_neg,
    ec_sub,
)

# Every value a move difference can take: (a - b) for a, b in {0, 1, 2}
DIFFERENCE_DOMAIN: Tuple[int, ...] = (-2, -1, 0, 1, 2)


@dataclass(frozen=True)
class ElGamalPublicKey:
    Q: ECPoint
    curve: CurveParams = BN254

    @property
    def p(self) -> int:
        return self.curve.p

    @property
    def G(self) -> ECPoint:
        return self.curve.G


@dataclass(frozen=True)
class ElGamalPrivateKey:
    x: int

    def __repr__(self) -> str:
        return "ElGamalPrivateKey(x=<hidden>)"


@dataclass(frozen=True)
class ElGamalCiphertext:
    c1: ECPoint
    c2: ECPoint
    # Encryption randomness, kept only for debugging and tests
    r: Optional[int] = field(default=None, compare=False, repr=False)


def generate_keypair(curve: CurveParams = BN254) -> Tuple[ElGamalPublicKey, ElGamalPrivateKey]:
    x = random_in_range(1, curve.n - 1)
    return ElGamalPublicKey(Q=ec_mul(curve.G, x, curve), curve=curve), ElGamalPrivateKey(x=x)


def encrypt(m: int, public_key: ElGamalPublicKey, r: Optional[int] = None) -> ElGamalCiphertext:
    """C1 = r*G, C2 = m*G + r*Q"""
    curve = public_key.curve
    if r is None:
        r = random_in_range(1, curve.n - 1)
    M = ec_mul(curve.G, m, curve)
    c1 = ec_mul(curve.G, r, curve)
    c2 = ec_add(M, ec_mul(public_key.Q, r, curve), curve)
    return ElGamalCiphertext(c1=c1, c2=c2, r=r)


def decrypt(
    ciphertext: ElGamalCiphertext,
    private_key: ElGamalPrivateKey,
    public_key: ElGamalPublicKey,
    candidates: Iterable[int] = DIFFERENCE_DOMAIN,
) -> int:
    curve = public_key.curve
    M = ec_sub(ciphertext.c2, ec_mul(ciphertext.c1, private_key.x, curve), curve)
    for candidate in candidates:
        if ec_mul(curve.G, candidate, curve) == M:
            return candidate
    raise DiscreteLogNotFoundError("Discrete logarithm not found")


def homomorphic_addition(
    ct1: ElGamalCiphertext, ct2: ElGamalCiphertext, public_key: ElGamalPublicKey
) -> ElGamalCiphertext:
    curve = public_key.curve
    return ElGamalCiphertext(
        c1=ec_add(ct1.c1, ct2.c1, curve),
        c2=ec_add(ct1.c2, ct2.c2, curve),
    )


def negate(ciphertext: ElGamalCiphertext, public_key: ElGamalPublicKey) -> ElGamalCiphertext:
    """Encryption of -m under randomness -r"""
    curve = public_key.curve
    return ElGamalCiphertext(c1=ec_neg(ciphertext.c1, curve), c2=ec_neg(ciphertext.c2, curve))


def scalar_addition(ciphertext: ElGamalCiphertext, k: int, public_key: ElGamalPublicKey) -> ElGamalCiphertext:
    # C1 only depends on the randomness
    curve = public_key.curve
    return ElGamalCiphertext(
        c1=ciphertext.c1,
        c2=ec_add(ciphertext.c2, ec_mul(curve.G, k, curve), curve),
        r=ciphertext.r,
    )


def scalar_subtraction(ciphertext: ElGamalCiphertext, k: int, public_key: ElGamalPublicKey) -> ElGamalCiphertext:
    curve = public_key.curve
    return ElGamalCiphertext(
        c1=ciphertext.c1,
        c2=ec_sub(ciphertext.c2, ec_mul(curve.G, k, curve), curve),
        r=ciphertext.r,
    )


def homomorphic_difference(
    ct_a: ElGamalCiphertext, ct_b: ElGamalCiphertext, public_key: ElGamalPublicKey
) -> ElGamalCiphertext:
    """Encryption of (a - b) without decrypting either side"""
    return homomorphic_addition(ct_a, negate(ct_b, public_key), public_key)
