"""
Big-integer modular arithmetic shared by both cryptosystems.
All randomness comes from the `secrets` CSPRNG.
"""
import secrets
from typing import Tuple

import gmpy2

from erps.errors import ModularInverseError


def mod_pow(base: int, exponent: int, modulus: int) -> int:
    """Computes base^exponent mod modulus (square-and-multiply via gmpy2)."""
    if modulus <= 0:
        raise ValueError("Modulus must be positive")
    if modulus == 1:
        return 0
    if exponent < 0:
        # gmpy2 would invert silently; route through mod_inverse so a missing
        # inverse surfaces as a domain error
        return mod_pow(mod_inverse(base, modulus), -exponent, modulus)
    return int(gmpy2.powmod(base % modulus, exponent, modulus))


def extended_gcd(a: int, b: int) -> Tuple[int, int, int]:
    """Returns (g, x, y) with a*x + b*y == g == gcd(a, b)."""
    old_r, r = a, b
    old_s, s = 1, 0
    old_t, t = 0, 1
    while r != 0:
        quotient = old_r // r
        old_r, r = r, old_r - quotient * r
        old_s, s = s, old_s - quotient * s
        old_t, t = t, old_t - quotient * t
    return old_r, old_s, old_t


def mod_inverse(a: int, m: int) -> int:
    """Finds x in [0, m) such that (a * x) % m == 1."""
    if m <= 0:
        raise ValueError("Modulus must be positive")
    g, x, _ = extended_gcd(a % m, m)
    if g != 1:
        raise ModularInverseError(f"Modular inverse does not exist (gcd={g})")
    return x % m


def random_bigint(n_bytes: int) -> int:
    """Random non-negative integer of n_bytes bytes from the OS CSPRNG."""
    if n_bytes <= 0:
        raise ValueError("n_bytes must be positive")
    return int.from_bytes(secrets.token_bytes(n_bytes), "big")


def random_in_range(low: int, high: int) -> int:
    """Uniform integer in [low, high]."""
    if high < low:
        raise ValueError(f"Empty range [{low}, {high}]")
    return low + secrets.randbelow(high - low + 1)


def random_coprime(n: int) -> int:
    """Uniform integer x in [1, n) with gcd(x, n) == 1."""
    while True:
        x = random_in_range(1, n - 1)
        if gmpy2.gcd(x, n) == 1:
            return x
