"""
zkcash.crypto.pairing_bn254
===========================

BN254 (alt_bn128) point handling and pairing-product checks on top of
`py_ecc.optimized_bn128`.

Public API
----------
- g1_point(x, y) / g2_point((x_c0, x_c1), (y_c0, y_c1))   affine ints -> projective
- g1_infinity() / g2_infinity()
- is_on_curve_g1(P), is_on_curve_g2(Q), in_subgroup_g2(Q)
- normalize_g1(P) / normalize_g2(Q)                       projective -> affine ints
- neg, add, multiply                                      re-exported group ops
- check_pairing_product(pairs) -> bool                    prod e(P_i, Q_i) == 1

Notes
-----
- Pairs are written e(P, Q) with P in G1 and Q in G2. `py_ecc` takes (Q, P);
  this wrapper handles the swap.
- The product check runs one Miller loop per pair and a *single* final
  exponentiation over the accumulated product, which is what the EVM
  precompile does and roughly 4x cheaper than pairing each term separately.
- G1 on BN254 has cofactor 1, so on-curve implies subgroup membership. G2 does
  not, hence `in_subgroup_g2`.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    FQ12,
    G1,
    G2,
    add,
    b as _B,
    b2 as _B2,
    curve_order as _Q,
    field_modulus as _P,
    final_exponentiate as _final_exponentiate,
    is_inf as _backend_is_inf,
    is_on_curve as _is_on_curve,
    multiply,
    neg,
    normalize as _normalize,
    pairing as _pairing,
)

# Opaque projective tuples understood by py_ecc.
G1Point = Any
G2Point = Any
GTElement = FQ12

CURVE_ORDER: int = int(_Q)
FIELD_MODULUS: int = int(_P)


def g1_generator() -> G1Point:
    return G1


def g2_generator() -> G2Point:
    return G2


def g1_infinity() -> G1Point:
    return (FQ.one(), FQ.one(), FQ.zero())


def g2_infinity() -> G2Point:
    return (FQ2.one(), FQ2.one(), FQ2.zero())


def g1_point(x: int, y: int) -> G1Point:
    """Affine (x, y) to a projective G1 point; (0, 0) is the point at infinity."""
    if x == 0 and y == 0:
        return g1_infinity()
    return (FQ(x), FQ(y), FQ.one())


def g2_point(xx: Sequence[int], yy: Sequence[int]) -> G2Point:
    """
    Affine G2 point from Fq2 coordinates given as [c0, c1] (value c0 + c1*i).
    All-zero coordinates are the point at infinity.
    """
    x0, x1 = int(xx[0]), int(xx[1])
    y0, y1 = int(yy[0]), int(yy[1])
    if x0 == 0 and x1 == 0 and y0 == 0 and y1 == 0:
        return g2_infinity()
    return (FQ2([x0, x1]), FQ2([y0, y1]), FQ2.one())


def _is_inf(P: Any) -> bool:
    return P is None or bool(_backend_is_inf(P))


def is_on_curve_g1(P: G1Point) -> bool:
    """Return True if P is on G1 or is the point at infinity."""
    return _is_inf(P) or bool(_is_on_curve(P, _B))


def is_on_curve_g2(Q: G2Point) -> bool:
    """Return True if Q is on the twist curve or is the point at infinity."""
    return _is_inf(Q) or bool(_is_on_curve(Q, _B2))


def in_subgroup_g2(Q: G2Point) -> bool:
    """True if Q is in the order-r subgroup of the twist (q * Q == O)."""
    if _is_inf(Q):
        return True
    return _is_inf(multiply(Q, CURVE_ORDER))


def normalize_g1(P: G1Point) -> Optional[Tuple[int, int]]:
    """Affine (x, y) integers, or None for the point at infinity."""
    if _is_inf(P):
        return None
    ax, ay = _normalize(P)
    return int(ax.n), int(ay.n)


def normalize_g2(Q: G2Point) -> Optional[Tuple[Tuple[int, int], Tuple[int, int]]]:
    """
    Affine ((x_c0, x_c1), (y_c0, y_c1)) integers, or None for the point at infinity.
    """
    if _is_inf(Q):
        return None
    ax, ay = _normalize(Q)
    return (_limb(ax.coeffs[0]), _limb(ax.coeffs[1])), (_limb(ay.coeffs[0]), _limb(ay.coeffs[1]))


def _limb(c: Any) -> int:
    # optimized FQ2 keeps plain int coefficients, the reference backend keeps FQ.
    return int(getattr(c, "n", c))


# -------------------------
# Pairing
# -------------------------


def miller_loop(P: G1Point, Q: G2Point) -> GTElement:
    """e(P, Q) before the final exponentiation; identity if either point is infinity."""
    if _is_inf(P) or _is_inf(Q):
        return FQ12.one()
    # py_ecc pairing expects (Q, P)
    return _pairing(Q, P, final_exponentiate=False)


def check_pairing_product(pairs: Iterable[Tuple[G1Point, G2Point]], *, validate: bool = True) -> bool:
    """
    Return True iff prod e(P_i, Q_i) == 1 in GT.

    With `validate`, every point must be on its curve and every G2 point in the
    prime-order subgroup; otherwise the check fails instead of raising.
    """
    acc = FQ12.one()
    for P, Q in pairs:
        if validate:
            if not is_on_curve_g1(P):
                return False
            if not (is_on_curve_g2(Q) and in_subgroup_g2(Q)):
                return False
        acc = acc * miller_loop(P, Q)
    return _final_exponentiate(acc) == FQ12.one()


__all__ = [
    "G1Point",
    "G2Point",
    "GTElement",
    "CURVE_ORDER",
    "FIELD_MODULUS",
    "g1_generator",
    "g2_generator",
    "g1_infinity",
    "g2_infinity",
    "g1_point",
    "g2_point",
    "is_on_curve_g1",
    "is_on_curve_g2",
    "in_subgroup_g2",
    "normalize_g1",
    "normalize_g2",
    "add",
    "multiply",
    "neg",
    "miller_loop",
    "check_pairing_product",
]
