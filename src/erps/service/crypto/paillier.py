"""
Paillier cryptosystem with gmpy2 big-integer arithmetic.

Ciphertexts live in [0, n^2). Multiplying ciphertexts adds plaintexts and raising
a ciphertext to k multiplies its plaintext by k, both modulo n.

The proof of valid encryption at the bottom of this module is a simplified
Schnorr-style proof of knowledge of the encryption randomness, made
non-interactive with a Fiat-Shamir hash. It binds the plaintext into the
challenge, so it is not zero-knowledge about m and must not be relied on for
adversarial security guarantees.
"""
import hashlib
from dataclasses import dataclass
from typing import Optional, Tuple

import gmpy2
from Crypto.Util.number import getPrime

from erps.errors import CryptoError, MalformedCiphertextError, PlaintextOutOfRangeError
from erps.service.crypto.arithmetic import mod_inverse, mod_pow, random_coprime

HASH_INPUT_DELIMITER = b"$"


# --- Keys ---


class PaillierPublicKey:
    """Public modulus n and generator g"""

    def __init__(self, n: int, g: Optional[int] = None):
        self.n = int(n)
        self.g = int(g) if g is not None else self.n + 1
        self._ns: Optional[int] = None

    @property
    def n_square(self) -> int:
        """Returns N*N, cached."""
        if self._ns is None:
            self._ns = self.n * self.n
        return self._ns

    def __eq__(self, other) -> bool:
        return isinstance(other, PaillierPublicKey) and (self.n, self.g) == (other.n, other.g)

    def __hash__(self) -> int:
        return hash((self.n, self.g))

    def __repr__(self) -> str:
        return f"PaillierPublicKey(n=<{self.n.bit_length()}-bit>)"


class PaillierPrivateKey:
    """Carmichael lambda and mu = L(g^lambda mod n^2)^-1 mod n"""

    def __init__(self, public_key: PaillierPublicKey, lambda_: int, mu: int):
        self.public_key = public_key
        self.lambda_ = int(lambda_)
        self.mu = int(mu)

    @classmethod
    def from_primes(cls, p: int, q: int, g: Optional[int] = None) -> "PaillierPrivateKey":
        if p == q:
            raise CryptoError("Paillier primes must be distinct")
        public_key = PaillierPublicKey(p * q, g)
        lambda_ = int(gmpy2.lcm(p - 1, q - 1))
        lg = _L(mod_pow(public_key.g, lambda_, public_key.n_square), public_key.n)
        return cls(public_key, lambda_, mod_inverse(lg, public_key.n))

    def __repr__(self) -> str:
        return "PaillierPrivateKey(<hidden>)"


def _L(u: int, n: int) -> int:
    """L(u) = (u - 1) // n"""
    return (u - 1) // n


def generate_keypair(modulus_bits: int = 2048) -> Tuple[PaillierPublicKey, PaillierPrivateKey]:
    prime_bits = modulus_bits // 2
    p = getPrime(prime_bits)
    q = getPrime(prime_bits)
    while p == q:
        q = getPrime(prime_bits)
    private_key = PaillierPrivateKey.from_primes(p, q)
    return private_key.public_key, private_key


# --- Encryption ---


def _check_ciphertext(c: int, public_key: PaillierPublicKey):
    if not (0 < c < public_key.n_square):
        raise MalformedCiphertextError("Ciphertext must be in the range [1, N^2-1]")


def encrypt_with_randomness(
    m: int, public_key: PaillierPublicKey, r: Optional[int] = None
) -> Tuple[int, int]:
    """Encrypts m and returns (ciphertext, randomness): c = g^m * r^n mod n^2"""
    n, ns = public_key.n, public_key.n_square
    if not (0 <= m < n):
        raise PlaintextOutOfRangeError("Message must be in the range [0, N-1]")
    if r is None:
        r = random_coprime(n)
    elif not (0 < r < n and gmpy2.gcd(r, n) == 1):
        raise CryptoError("Randomness must be a positive integer relatively prime to N")
    c = (mod_pow(public_key.g, m, ns) * mod_pow(r, n, ns)) % ns
    return c, r


def encrypt(m: int, public_key: PaillierPublicKey) -> int:
    c, _ = encrypt_with_randomness(m, public_key)
    return c


def decrypt(c: int, private_key: PaillierPrivateKey) -> int:
    public_key = private_key.public_key
    _check_ciphertext(c, public_key)
    if gmpy2.gcd(c, public_key.n) != 1:
        raise MalformedCiphertextError("Ciphertext is not relatively prime to N")
    u = mod_pow(c, private_key.lambda_, public_key.n_square)
    return (_L(u, public_key.n) * private_key.mu) % public_key.n


def to_signed(m: int, public_key: PaillierPublicKey) -> int:
    """Plaintexts above n/2 represent negative numbers"""
    return m - public_key.n if m > public_key.n // 2 else m


# --- Homomorphic operations ---


def add_encrypted(c1: int, c2: int, public_key: PaillierPublicKey) -> int:
    _check_ciphertext(c1, public_key)
    _check_ciphertext(c2, public_key)
    return (c1 * c2) % public_key.n_square


def multiply_by_constant(c: int, k: int, public_key: PaillierPublicKey) -> int:
    _check_ciphertext(c, public_key)
    # Negative k goes through the inverse
    return mod_pow(c, k, public_key.n_square)


def subtract_encrypted(c1: int, c2: int, public_key: PaillierPublicKey) -> int:
    """Encryption of (m1 - m2) mod n"""
    _check_ciphertext(c1, public_key)
    _check_ciphertext(c2, public_key)
    return (c1 * mod_inverse(c2, public_key.n_square)) % public_key.n_square


# --- Simplified proof of valid encryption ---


@dataclass(frozen=True)
class EncryptionProof:
    commitment: int
    challenge: int
    response: int


def _int_bytes(i: int) -> bytes:
    return i.to_bytes((i.bit_length() + 7) // 8, "big") if i != 0 else b""


def _challenge(public_key: PaillierPublicKey, c: int, m: int, commitment: int) -> int:
    h = hashlib.sha256()
    for value in (public_key.n, public_key.g, c, m, commitment):
        h.update(_int_bytes(value))
        h.update(HASH_INPUT_DELIMITER)
    return int.from_bytes(h.digest(), "big")


def generate_proof(m: int, r: int, c: int, public_key: PaillierPublicKey) -> EncryptionProof:
    n, ns = public_key.n, public_key.n_square
    s = random_coprime(n)
    commitment = mod_pow(s, n, ns)
    challenge = _challenge(public_key, c, m, commitment)
    response = (s * mod_pow(r, challenge, n)) % n
    return EncryptionProof(commitment=commitment, challenge=challenge, response=response)


def verify_proof(c: int, m: int, proof: EncryptionProof, public_key: PaillierPublicKey) -> bool:
    """Checks response^n == commitment * u^challenge (mod n^2) with u = c * g^-m."""
    n, ns = public_key.n, public_key.n_square
    if not (0 < c < ns) or not (0 < proof.commitment < ns) or not (0 < proof.response < n):
        return False
    if proof.challenge != _challenge(public_key, c, m, proof.commitment):
        return False
    u = (c * mod_inverse(mod_pow(public_key.g, m, ns), ns)) % ns
    left = mod_pow(proof.response, n, ns)
    right = (proof.commitment * mod_pow(u, proof.challenge, ns)) % ns
    return left == right
