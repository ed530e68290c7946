"""
zkcash.crypto.poseidon
======================

Poseidon hash over the BN254 scalar field (Fr), bit-compatible with circomlib's
`Poseidon(n)` template and the `light-poseidon` "circom" parameter sets.

The withdraw circuit recomputes every Merkle node and note commitment with
this exact function. Any difference in field, round constants, MDS matrix,
round schedule or domain tag silently invalidates *every* future withdrawal,
so the instance is locked by golden vectors in the test suite.

Instance
--------
- Field: BN254 Fr.
- Width `t = n_inputs + 1`; the extra word is the capacity slot, placed
  *first* and initialised to the domain tag 0.
- S-box `x^5`, `R_F = 8` full rounds (4 before / 4 after the partial rounds),
  `R_P` partial rounds from the circom table below.
- Round constants and the Cauchy MDS matrix are derived with the Grain LFSR
  procedure of the Poseidon reference implementation
  (`generate_parameters_grain.sage`, field=1, sbox=0, n=254).
- Output: `state[0]` after a single permutation (no sponge).

Public API
----------
- PoseidonParams(t, R_F, R_P, alpha, mds, rc)
- register_params(name, params) / get_params(name) / load_params_json(path, name=None)
- circom_params(t) -> PoseidonParams          # derived once, then cached
- poseidon_permute(state, params)
- poseidon(inputs)                            # 1..16 canonical field elements
- hash1(x), hash2(a, b), hash_left_right(left, right)
- hash_bytes_be(inputs)                       # 32-byte big-endian in/out

Inputs to the int API must already be canonical (see `zkcash.crypto.field`);
the hasher never reduces silently.

JSON schema for pinned parameters
---------------------------------
{
  "t": 3, "R_F": 8, "R_P": 57, "alpha": 5,
  "mds": [[...t ints...], ...],
  "rc":  [[...t ints...], ... R_F+R_P rows ...]   # or a flat list of (R_F+R_P)*t
}
Integers may be decimal strings, 0x-hex strings or JSON numbers.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Union

from ..errors import InvalidPublicInputEncoding
from .field import FIELD_BYTES, R, field_from_bytes, field_to_bytes

_MOD = R

FULL_ROUNDS = 8
ALPHA = 5
# circom partial round counts, indexed by t - 2 (t = 2..17).
PARTIAL_ROUNDS = (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68)
MAX_INPUTS = len(PARTIAL_ROUNDS)

# ---------------------------
# Field arithmetic (mod Fr)
# ---------------------------


def _fadd(a: int, b: int) -> int:
    return (a + b) % _MOD


def _fmul(a: int, b: int) -> int:
    return (a * b) % _MOD


def _finv(a: int) -> int:
    if a % _MOD == 0:
        raise ZeroDivisionError("inverse of zero in Fr")
    return pow(a, _MOD - 2, _MOD)


def _fpow_alpha(x: int, alpha: int) -> int:
    # Fast path for alpha=5 (x^5 = x * x^2 * x^2)
    if alpha == 5:
        x2 = _fmul(x, x)
        x4 = _fmul(x2, x2)
        return _fmul(x, x4)
    return pow(x, alpha, _MOD)


# ---------------------------
# Parameters & registry
# ---------------------------


@dataclass(frozen=True)
class PoseidonParams:
    t: int  # state width
    R_F: int  # number of full rounds
    R_P: int  # number of partial rounds
    alpha: int  # S-box exponent
    mds: List[List[int]]  # MDS matrix, shape t x t
    rc: List[List[int]]  # round constants, shape (R_F + R_P) x t

    def validate(self) -> None:
        if self.t < 2:
            raise ValueError("t must be >= 2")
        if self.R_F % 2 != 0:
            raise ValueError("R_F must be even (split half-before/after partial rounds)")
        if self.alpha < 3 or self.alpha % 2 == 0:
            raise ValueError("alpha must be an odd integer >= 3")
        if len(self.mds) != self.t or any(len(row) != self.t for row in self.mds):
            raise ValueError("mds must be t x t")
        expected_rounds = self.R_F + self.R_P
        if len(self.rc) != expected_rounds or any(len(row) != self.t for row in self.rc):
            raise ValueError(f"rc must be (R_F+R_P) x t = {expected_rounds} x {self.t}")


_PARAMS_REGISTRY: Dict[str, PoseidonParams] = {}


def register_params(name: str, params: PoseidonParams) -> None:
    """
    Register a Poseidon parameter set under `name`.

    Registering `circom_t{t}` pins the set used by `poseidon()` for that width,
    e.g. when a deployment ships the circuit's own constants file.
    """
    if not name or not isinstance(name, str):
        raise ValueError("name must be a non-empty string")
    params.validate()
    _PARAMS_REGISTRY[name] = params


def get_params(name: str) -> PoseidonParams:
    if name not in _PARAMS_REGISTRY:
        if name.startswith("circom_t"):
            return circom_params(int(name[len("circom_t"):]))
        raise KeyError(
            f"Poseidon params '{name}' are not registered. "
            "Load them with load_params_json(...) or register_params(...)."
        )
    return _PARAMS_REGISTRY[name]


def _to_int(x: Union[int, str]) -> int:
    if isinstance(x, int):
        v = x
    else:
        s = str(x).strip().lower()
        v = int(s, 16) if s.startswith("0x") else int(s)
    if not 0 <= v < _MOD:
        raise ValueError("parameter value out of range for Fr")
    return v


def load_params_json(path: str, name: Optional[str] = None) -> PoseidonParams:
    """
    Load a Poseidon params JSON file and register it.

    If `name` is None, a name is derived from the filename (without extension).
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    t = int(raw["t"])
    R_F = int(raw["R_F"])
    R_P = int(raw["R_P"])
    alpha = int(raw.get("alpha", ALPHA))

    mds = [[_to_int(v) for v in row] for row in raw["mds"]]
    rc_raw = raw["rc"]
    if rc_raw and not isinstance(rc_raw[0], list):
        flat = [_to_int(v) for v in rc_raw]
        rc = [flat[i : i + t] for i in range(0, len(flat), t)]
    else:
        rc = [[_to_int(v) for v in row] for row in rc_raw]

    params = PoseidonParams(t=t, R_F=R_F, R_P=R_P, alpha=alpha, mds=mds, rc=rc)
    reg_name = name or os.path.splitext(os.path.basename(path))[0]
    register_params(reg_name, params)
    return params


# ---------------------------
# Grain LFSR parameter derivation
# ---------------------------


class _Grain:
    """
    80-bit self-shrinking Grain LFSR from the Poseidon reference scripts.

    Seeded with: field(2) | sbox(4) | n(12) | t(12) | R_F(10) | R_P(10) | 1*30,
    all big-endian bit strings, then clocked 160 times before use.
    """

    __slots__ = ("_s", "_pos", "_out")

    def __init__(self, *, field: int, sbox: int, n: int, t: int, r_f: int, r_p: int) -> None:
        seed = (
            _bits(field, 2) + _bits(sbox, 4) + _bits(n, 12) + _bits(t, 12) + _bits(r_f, 10) + _bits(r_p, 10) + [1] * 30
        )
        self._s = seed
        self._pos = 0
        for _ in range(160):
            self._clock()
        self._out = self._bits()

    def _clock(self) -> int:
        s, p = self._s, self._pos
        new = s[(p + 62) % 80] ^ s[(p + 51) % 80] ^ s[(p + 38) % 80] ^ s[(p + 23) % 80] ^ s[(p + 13) % 80] ^ s[p]
        s[p] = new
        self._pos = (p + 1) % 80
        return new

    def _bits(self) -> Iterator[int]:
        # Output b only for pairs (1, b); pairs (0, _) are discarded.
        while True:
            if self._clock() == 1:
                yield self._clock()
            else:
                self._clock()

    def random_int(self, n: int) -> int:
        """Next `n` output bits as a big-endian integer."""
        v = 0
        for _ in range(n):
            v = (v << 1) | next(self._out)
        return v


def _bits(v: int, width: int) -> List[int]:
    return [int(c) for c in format(v, f"0{width}b")]


def _derive_grain_params(t: int, R_F: int, R_P: int, alpha: int = ALPHA) -> PoseidonParams:
    n = _MOD.bit_length()  # 254
    grain = _Grain(field=1, sbox=0, n=n, t=t, r_f=R_F, r_p=R_P)

    # Round constants: rejection-sampled n-bit integers below the modulus.
    flat: List[int] = []
    for _ in range((R_F + R_P) * t):
        v = grain.random_int(n)
        while v >= _MOD:
            v = grain.random_int(n)
        flat.append(v)
    rc = [flat[i : i + t] for i in range(0, len(flat), t)]

    # Cauchy MDS: M[i][j] = 1 / (x_i + y_j); samples are reduced, not rejected.
    while True:
        samples = [grain.random_int(n) % _MOD for _ in range(2 * t)]
        if len(set(samples)) != len(samples):
            continue
        xs, ys = samples[:t], samples[t:]
        if any((x + y) % _MOD == 0 for x in xs for y in ys):
            continue
        mds = [[_finv(x + y) for y in ys] for x in xs]
        break

    return PoseidonParams(t=t, R_F=R_F, R_P=R_P, alpha=alpha, mds=mds, rc=rc)


def circom_params(t: int) -> PoseidonParams:
    """Return (deriving and registering on first use) the circom params for width `t`."""
    if not 2 <= t <= MAX_INPUTS + 1:
        raise ValueError(f"circom Poseidon supports t in [2, {MAX_INPUTS + 1}], got {t}")
    name = f"circom_t{t}"
    params = _PARAMS_REGISTRY.get(name)
    if params is None:
        params = _derive_grain_params(t, FULL_ROUNDS, PARTIAL_ROUNDS[t - 2])
        register_params(name, params)
    return params


# ---------------------------
# Permutation
# ---------------------------


def _apply_mds(state: List[int], mds: List[List[int]]) -> List[int]:
    t = len(state)
    out = [0] * t
    for i in range(t):
        acc = 0
        row = mds[i]
        for j in range(t):
            acc += row[j] * state[j]
        out[i] = acc % _MOD
    return out


def poseidon_permute(state: Sequence[int], params: PoseidonParams) -> List[int]:
    """
    Poseidon permutation.

    Round schedule:
      - First R_F/2 full rounds (S-box on all t elements)
      - R_P partial rounds (S-box on the *first* element only)
      - Last  R_F/2 full rounds

    Each round is ARK -> S-box -> MDS. Returns a new list.
    """
    t, R_F, R_P, alpha, mds, rc = params.t, params.R_F, params.R_P, params.alpha, params.mds, params.rc
    if len(state) != t:
        raise ValueError(f"state length {len(state)} != t={t}")

    x = [int(v) % _MOD for v in state]
    r = 0
    half = R_F // 2

    for _ in range(half):
        x = [_fpow_alpha(_fadd(x[i], rc[r][i]), alpha) for i in range(t)]
        x = _apply_mds(x, mds)
        r += 1

    for _ in range(R_P):
        x = [_fadd(x[i], rc[r][i]) for i in range(t)]
        x[0] = _fpow_alpha(x[0], alpha)
        x = _apply_mds(x, mds)
        r += 1

    for _ in range(half):
        x = [_fpow_alpha(_fadd(x[i], rc[r][i]), alpha) for i in range(t)]
        x = _apply_mds(x, mds)
        r += 1

    assert r == R_F + R_P, "round counter mismatch"
    return x


# ---------------------------
# Hash interface
# ---------------------------


def poseidon(inputs: Sequence[int]) -> int:
    """
    circomlib `Poseidon(n)`: state = [0, inputs...], one permutation, return state[0].
    """
    n = len(inputs)
    if not 1 <= n <= MAX_INPUTS:
        raise ValueError(f"poseidon takes 1..{MAX_INPUTS} inputs, got {n}")
    for v in inputs:
        if isinstance(v, bool) or not isinstance(v, int) or not 0 <= v < _MOD:
            raise InvalidPublicInputEncoding("poseidon input is not a canonical field element")
    params = circom_params(n + 1)
    return poseidon_permute([0, *inputs], params)[0]


def hash1(x: int) -> int:
    """Single-input Poseidon (t=2); nullifier derivation."""
    return poseidon([x])


def hash2(a: int, b: int) -> int:
    """Two-input Poseidon (t=3); note field compression."""
    return poseidon([a, b])


def hash_left_right(left: int, right: int) -> int:
    """Merkle node combiner. Must equal the circuit's node hash, which is `hash2`."""
    return poseidon([left, right])


def hash_bytes_be(inputs: Sequence[bytes]) -> bytes:
    """Hash 32-byte big-endian canonical inputs, returning the 32-byte big-endian digest."""
    vals = [field_from_bytes(b, what="poseidon input") for b in inputs]
    return field_to_bytes(poseidon(vals))


__all__ = [
    "FULL_ROUNDS",
    "PARTIAL_ROUNDS",
    "MAX_INPUTS",
    "FIELD_BYTES",
    "PoseidonParams",
    "register_params",
    "get_params",
    "load_params_json",
    "circom_params",
    "poseidon_permute",
    "poseidon",
    "hash1",
    "hash2",
    "hash_left_right",
    "hash_bytes_be",
]
