"""
zkcash.crypto.groth16_bn254
===========================

Groth16 verifier for BN254 (alt_bn128), compatible with the `snarkjs` JSON
layout.

Verification equation
---------------------
    e(A, B) == e(alpha1, beta2) * e(VK_x, gamma2) * e(C, delta2)

checked as a product in GT with one final exponentiation:
    e(A, B) * e(-alpha1, beta2) * e(-VK_x, gamma2) * e(-C, delta2) == 1

where VK_x = IC[0] + sum_i input_i * IC[i+1].

JSON compatibility (snarkjs)
----------------------------
- Verifying key:
  {
    "vk_alpha_1": [ax, ay] (or [ax, ay, "1"]),
    "vk_beta_2":  [[bx0, bx1], [by0, by1]],
    "vk_gamma_2": [[gx0, gx1], [gy0, gy1]],
    "vk_delta_2": [[dx0, dx1], [dy0, dy1]],
    "IC": [[ic0x, ic0y], [ic1x, ic1y], ...],   # length = 1 + #public_inputs
    "nPublic": n                               # optional, checked if present
  }

- Proof:
  { "pi_a": [ax, ay], "pi_b": [[bx0, bx1], [by0, by1]], "pi_c": [cx, cy] }

Coordinates are decimal strings, 0x-hex strings or numbers. Fq2 elements are
`[c0, c1]` meaning c0 + c1*i.

Unlike a reducing verifier, public inputs here must already be canonical
(0 <= x < r); a non-canonical input makes verification fail.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List, Mapping, Sequence, Union

from .pairing_bn254 import (
    CURVE_ORDER,
    FIELD_MODULUS,
    G1Point,
    G2Point,
    add,
    check_pairing_product,
    g1_point,
    g2_point,
    in_subgroup_g2,
    is_on_curve_g1,
    is_on_curve_g2,
    multiply,
    neg,
)

_FR = CURVE_ORDER


# ---------------------------
# Utilities
# ---------------------------


def _to_int(z: Union[int, str]) -> int:
    if isinstance(z, bool):
        raise ValueError("bool is not a coordinate")
    if isinstance(z, int):
        return z
    s = str(z).strip().lower()
    if s.startswith("0x"):
        return int(s, 16)
    return int(s)


def _coord(z: Union[int, str]) -> int:
    v = _to_int(z)
    if not 0 <= v < FIELD_MODULUS:
        raise ValueError("coordinate is not a canonical base field element")
    return v


def _g1(pt: Sequence[Union[int, str]]) -> G1Point:
    # snarkjs appends a projective "1"; anything but [x, y] / [x, y, 1] is rejected.
    if len(pt) == 3 and _to_int(pt[2]) != 1:
        raise ValueError("G1 point must be affine")
    P = g1_point(_coord(pt[0]), _coord(pt[1]))
    if not is_on_curve_g1(P):
        raise ValueError("G1 point is not on curve")
    return P


def _g2(pt: Sequence[Sequence[Union[int, str]]]) -> G2Point:
    if len(pt) == 3 and [_to_int(v) for v in pt[2]] != [1, 0]:
        raise ValueError("G2 point must be affine")
    xx, yy = pt[0], pt[1]
    Q = g2_point([_coord(xx[0]), _coord(xx[1])], [_coord(yy[0]), _coord(yy[1])])
    if not is_on_curve_g2(Q):
        raise ValueError("G2 point is not on curve")
    if not in_subgroup_g2(Q):
        raise ValueError("G2 point is not in the prime-order subgroup")
    return Q


def _pick(d: Mapping[str, Any], *names: str) -> Any:
    for n in names:
        if n in d:
            return d[n]
    raise KeyError(names[0])


# ---------------------------
# Data classes
# ---------------------------


@dataclass(frozen=True)
class VerifyingKey:
    alpha1: G1Point
    beta2: G2Point
    gamma2: G2Point
    delta2: G2Point
    IC: List[G1Point]  # [IC0, IC1, ..., ICn]

    @property
    def n_public(self) -> int:
        return len(self.IC) - 1


@dataclass(frozen=True)
class Proof:
    A: G1Point
    B: G2Point
    C: G1Point


# ---------------------------
# Loaders (snarkjs JSON)
# ---------------------------


def load_vk(vk_json: Mapping[str, Any]) -> VerifyingKey:
    """
    Parse a snarkjs-style verifying key into a VerifyingKey.

    Raises ValueError / KeyError on malformed keys; a key is configuration, so
    failing loudly here is preferable to rejecting every proof later.
    """
    alpha1 = _g1(_pick(vk_json, "vk_alpha_1", "alpha_1", "alpha1"))
    beta2 = _g2(_pick(vk_json, "vk_beta_2", "beta_2", "beta2"))
    gamma2 = _g2(_pick(vk_json, "vk_gamma_2", "gamma_2", "gamma2"))
    delta2 = _g2(_pick(vk_json, "vk_delta_2", "delta_2", "delta2"))
    ic_pts = [_g1(p) for p in _pick(vk_json, "IC", "vk_ic", "ic")]
    if not ic_pts:
        raise ValueError("verifying key has no IC points")

    n_public = vk_json.get("nPublic")
    if n_public is not None and int(n_public) != len(ic_pts) - 1:
        raise ValueError(f"nPublic={n_public} does not match {len(ic_pts)} IC points")

    return VerifyingKey(alpha1=alpha1, beta2=beta2, gamma2=gamma2, delta2=delta2, IC=ic_pts)


def load_vk_file(path: str) -> VerifyingKey:
    with open(path, "r", encoding="utf-8") as f:
        return load_vk(json.load(f))


def load_proof(proof_json: Mapping[str, Any]) -> Proof:
    """Parse a snarkjs-style proof object into a Proof."""
    A = _g1(_pick(proof_json, "pi_a", "A"))
    B = _g2(_pick(proof_json, "pi_b", "B"))
    C = _g1(_pick(proof_json, "pi_c", "C"))
    return Proof(A=A, B=B, C=C)


# ---------------------------
# Core verification
# ---------------------------


def vk_x(IC: Sequence[G1Point], inputs: Sequence[int]) -> G1Point:
    """
    Compute VK_x = IC[0] + sum_i inputs[i] * IC[i+1] in G1.
    """
    if len(IC) != len(inputs) + 1:
        raise ValueError(f"IC length {len(IC)} != 1 + len(inputs) {len(inputs)}")
    acc = IC[0]
    for i, s in enumerate(inputs):
        if isinstance(s, bool) or not isinstance(s, int) or not 0 <= s < _FR:
            raise ValueError(f"public input {i} is not a canonical scalar")
        if s != 0:
            acc = add(acc, multiply(IC[i + 1], s))
    return acc


def verify(vk: VerifyingKey, proof: Proof, public_inputs: Sequence[int]) -> bool:
    """
    Verify a decoded proof. Returns True on success, False otherwise; routine
    failures (bad input count, bad scalars, failed pairing) never raise.

    `vk` and `proof` must come from `load_vk` / `load_proof`, which already
    reject off-curve and wrong-subgroup points.
    """
    try:
        vkx = vk_x(vk.IC, public_inputs)
    except ValueError:
        return False
    pairs = [
        (proof.A, proof.B),
        (neg(vk.alpha1), vk.beta2),
        (neg(vkx), vk.gamma2),
        (neg(proof.C), vk.delta2),
    ]
    return check_pairing_product(pairs, validate=False)


def verify_groth16(
    vk_json: Mapping[str, Any],
    proof_json: Mapping[str, Any],
    public_inputs: Sequence[Union[int, str]],
) -> bool:
    """
    Verify a Groth16 proof given snarkjs-style VK/proof JSON and public inputs.

    Returns True on success, False otherwise (no exceptions for routine failures).
    """
    try:
        vk = load_vk(vk_json)
        pf = load_proof(proof_json)
        inputs = [_to_int(v) for v in public_inputs]
    except (KeyError, TypeError, ValueError, IndexError):
        return False
    return verify(vk, pf, inputs)


__all__ = [
    "VerifyingKey",
    "Proof",
    "load_vk",
    "load_vk_file",
    "load_proof",
    "vk_x",
    "verify",
    "verify_groth16",
]
