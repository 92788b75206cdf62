"""
Elliptic-curve engine over a prime field, short Weierstrass form y^2 = x^3 + ax + b.

Points are immutable values. The point at infinity is the (0, 0) sentinel, which
is not a solution of the curve equation for any curve with b != 0 (BN254 has b = 3).
"""
from dataclasses import dataclass

from erps.errors import DegenerateCurveOperationError, ModularInverseError
from erps.service.crypto.arithmetic import mod_inverse


@dataclass(frozen=True)
class ECPoint:
    x: int
    y: int

    @property
    def is_infinity(self) -> bool:
        return self.x == 0 and self.y == 0


INFINITY = ECPoint(0, 0)


@dataclass(frozen=True)
class CurveParams:
    """Field modulus p, coefficients a and b, group order n and generator G"""
    name: str
    p: int
    a: int
    b: int
    n: int
    G: ECPoint


# BN254 (alt_bn128), the pairing-friendly curve with EVM precompiles
BN254 = CurveParams(
    name="bn254",
    p=0x30644E72E131A029B85045B68181585D97816A916871CA8D3C208C16D87CFD47,
    a=0,
    b=3,
    n=0x30644E72E131A029B85045B68181585D2833E84879B9709143E1F593F0000001,
    G=ECPoint(1, 2),
)


def is_on_curve(P: ECPoint, curve: CurveParams = BN254) -> bool:
    if P.is_infinity:
        return True
    if not (0 <= P.x < curve.p and 0 <= P.y < curve.p):
        return False
    return (P.y * P.y - (P.x * P.x * P.x + curve.a * P.x + curve.b)) % curve.p == 0


def _inverse(denominator: int, curve: CurveParams, operation: str) -> int:
    try:
        return mod_inverse(denominator, curve.p)
    except ModularInverseError as e:
        raise DegenerateCurveOperationError(
            f"Zero denominator in {operation} on {curve.name}: curve parameters mismatch or invalid point"
        ) from e


def ec_neg(P: ECPoint, curve: CurveParams = BN254) -> ECPoint:
    if P.is_infinity:
        return INFINITY
    return ECPoint(P.x % curve.p, (-P.y) % curve.p)


def ec_double(P: ECPoint, curve: CurveParams = BN254) -> ECPoint:
    if P.is_infinity:
        return INFINITY
    p = curve.p
    x, y = P.x % p, P.y % p
    # Order-2 point: vertical tangent
    if y == 0:
        return INFINITY
    slope = (3 * x * x + curve.a) * _inverse(2 * y, curve, "point doubling") % p
    x3 = (slope * slope - 2 * x) % p
    y3 = (slope * (x - x3) - y) % p
    return ECPoint(x3, y3)


def ec_add(P: ECPoint, Q: ECPoint, curve: CurveParams = BN254) -> ECPoint:
    if P.is_infinity:
        return Q
    if Q.is_infinity:
        return P
    p = curve.p
    x1, y1 = P.x % p, P.y % p
    x2, y2 = Q.x % p, Q.y % p
    if x1 == x2:
        if y1 != y2:
            return INFINITY
        return ec_double(ECPoint(x1, y1), curve)
    slope = (y2 - y1) * _inverse(x2 - x1, curve, "point addition") % p
    x3 = (slope * slope - x1 - x2) % p
    y3 = (slope * (x1 - x3) - y1) % p
    return ECPoint(x3, y3)


def ec_mul(P: ECPoint, scalar: int, curve: CurveParams = BN254) -> ECPoint:
    """Double-and-add, consuming the scalar bit by bit from the least significant end."""
    if scalar < 0:
        return ec_mul(ec_neg(P, curve), -scalar, curve)
    result = INFINITY
    addend = P
    while scalar > 0:
        if scalar & 1:
            result = ec_add(result, addend, curve)
        addend = ec_double(addend, curve)
        scalar >>= 1
    return result


def ec_sub(P: ECPoint, Q: ECPoint, curve: CurveParams = BN254) -> ECPoint:
    return ec_add(P, ec_neg(Q, curve), curve)
