"""
zkcash.tests helpers

- Deterministic test defaults (Hypothesis profiles).
- HashVerifier: a ProofVerifier stand-in that accepts proof == sha256(public inputs).
- groth16_fixture(): a real BN254 Groth16 verifying key + proof built from a
  known trapdoor, so pairing checks run without a circuit or snarkjs.
- Golden Poseidon / Merkle values shared across test modules.
- env_flag(name), configure_test_logging()
"""

from __future__ import annotations

import hashlib
import logging
import os
from typing import Any, Dict, List, Sequence, Tuple

from hypothesis import settings

from zkcash.crypto.groth16_bn254 import Proof
from zkcash.crypto.pairing_bn254 import (
    CURVE_ORDER,
    g1_generator,
    g2_generator,
    multiply,
    normalize_g1,
    normalize_g2,
)
from zkcash.verifier import PublicInputs, encode_proof

# ----- Hypothesis -----
# Poseidon in pure Python is slow; keep example counts modest.
settings.register_profile("local", settings(max_examples=25, deadline=None))
settings.register_profile("ci", settings(max_examples=100, deadline=None))
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE") or ("ci" if os.environ.get("CI") else "local"))

# ----- Golden values (circomlib Poseidon, BN254) -----
POSEIDON_1 = 18586133768512220936620570745912940619677854269274689475585506675881198879027
POSEIDON_1_2 = 7853200120776062878684798364095072458815029376092732009249414926327459813530
POSEIDON_1_2_3 = 6542985608222806190361240322586112750744169038454362455181422643027100751666
HASH1_ZERO = 19014214495641488759237505126948346942972912379615652741039992445865937985820
ZEROS_1 = 14744269619966411208579211824598458697587494354926760081771325075741142829156
ZEROS_3 = 11286972368698509976183087595462810875513684078608517520839298933882497716792
EMPTY_ROOT_20 = 15019797232609675441998260052101280400536945603062888308240081994073687793470
DEPTH3_ROOT_1 = 11710159133394298424825017683884950411806728211005185142931491400770494599857
DEPTH3_ROOT_1_2 = 15561939677055711341184017012485566179263345462628166026000194893639353250520

ALICE = b"\xa1" * 32
BOB = b"\xb0" * 32


# ----- Proof verifier stand-in -----


def hash_proof(public: PublicInputs) -> bytes:
    return hashlib.sha256(b"zkcash-test-proof" + public.encode()).digest()


class HashVerifier:
    """Accepts exactly the proof `hash_proof(public)`; counts calls."""

    def __init__(self) -> None:
        self.calls = 0

    def verify(self, proof: bytes, public_inputs: PublicInputs) -> bool:
        self.calls += 1
        return proof == hash_proof(public_inputs)


# ----- Groth16 trapdoor fixture -----


def _g1_json(k: int) -> List[str]:
    x, y = normalize_g1(multiply(g1_generator(), k))
    return [str(x), str(y), "1"]


def _g2_json(k: int) -> List[List[str]]:
    (x0, x1), (y0, y1) = normalize_g2(multiply(g2_generator(), k))
    return [[str(x0), str(x1)], [str(y0), str(y1)], ["1", "0"]]


def groth16_fixture(public_inputs: Sequence[int], *, seed: int = 7) -> Tuple[Dict[str, Any], bytes]:
    """
    Build (snarkjs vk json, 256-byte proof) such that the proof verifies for
    exactly `public_inputs`.

    With IC_i = k_i*G1, VK_x = s*G1 for s = k_0 + sum(x_i * k_i). Choosing A = a*G1,
    B = b*G2 and C = c*G1 with c = (a*b - alpha*beta - s*gamma) / delta makes
    e(A,B) = e(alpha,beta) e(VK_x,gamma) e(C,delta).
    """
    r = CURVE_ORDER
    alpha, beta, gamma, delta = 3 + seed, 5 + seed, 7 + seed, 11 + seed
    ks = [13 + 2 * i + seed for i in range(len(public_inputs) + 1)]
    s = (ks[0] + sum(x * k for x, k in zip(public_inputs, ks[1:]))) % r
    a, b = 17 + seed, 19 + seed
    c = (a * b - alpha * beta - s * gamma) * pow(delta, r - 2, r) % r

    vk = {
        "protocol": "groth16",
        "curve": "bn128",
        "nPublic": len(public_inputs),
        "vk_alpha_1": _g1_json(alpha),
        "vk_beta_2": _g2_json(beta),
        "vk_gamma_2": _g2_json(gamma),
        "vk_delta_2": _g2_json(delta),
        "IC": [_g1_json(k) for k in ks],
    }
    proof = Proof(
        A=multiply(g1_generator(), a),
        B=multiply(g2_generator(), b),
        C=multiply(g1_generator(), c),
    )
    return vk, encode_proof(proof)


# ----- Env & logging -----


def env_flag(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "on"}


def configure_test_logging(level: int = logging.INFO) -> None:
    """Enable zkcash.* logging when ZKCASH_TEST_LOG is set."""
    if env_flag("ZKCASH_TEST_LOG", False):
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        logging.getLogger("zkcash").setLevel(level)


configure_test_logging()

__all__ = [
    "POSEIDON_1",
    "POSEIDON_1_2",
    "POSEIDON_1_2_3",
    "HASH1_ZERO",
    "ZEROS_1",
    "ZEROS_3",
    "EMPTY_ROOT_20",
    "DEPTH3_ROOT_1",
    "DEPTH3_ROOT_1_2",
    "ALICE",
    "BOB",
    "hash_proof",
    "HashVerifier",
    "groth16_fixture",
    "env_flag",
    "configure_test_logging",
]
