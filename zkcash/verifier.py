"""
zkcash.verifier — withdraw proof verification.

A withdrawal carries a Groth16 proof over BN254 and five public inputs, fed to
the verifier in this fixed order (the circuit's public signal order):

    0. root               historical accumulator root the note is proven under
    1. nullifier          nullifier hash revealed by the spend
    2. output_commitment  change note commitment, 0 = no change note
    3. amount             withdrawn amount (u64)
    4. recipient_binding  sha256(recipient) with the top byte cleared (248 bits)

Binding the recipient into the proof stops a relayer from redirecting funds;
clearing the top byte keeps the digest below r without reduction.

Proof bytes (256) use the EVM precompile (EIP-197) encoding:

    A: x ‖ y                         (G1, 64 bytes)
    B: x.c1 ‖ x.c0 ‖ y.c1 ‖ y.c0     (G2, 128 bytes)
    C: x ‖ y                         (G1, 64 bytes)

every limb a 32-byte big-endian base-field element; all-zero means the point
at infinity. A malformed proof is a *rejection*: `verify` returns False and
never raises.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from .crypto import groth16_bn254 as g16
from .crypto.field import FIELD_BYTES, field_to_bytes, is_canonical
from .crypto.pairing_bn254 import FIELD_MODULUS, normalize_g1, normalize_g2
from .errors import InvalidConfig, InvalidPublicInputEncoding
from .logging import get_logger

log = get_logger(__name__)

PROOF_SIZE = 256
N_PUBLIC_INPUTS = 5
NO_CHANGE = 0
MAX_AMOUNT = (1 << 64) - 1


def recipient_binding(recipient: bytes) -> int:
    """sha256(recipient) as a big-endian integer with the top byte cleared."""
    digest = hashlib.sha256(bytes(recipient)).digest()
    return int.from_bytes(b"\x00" + digest[1:], "big")


@dataclass(frozen=True)
class PublicInputs:
    root: int
    nullifier: int
    output_commitment: int
    amount: int
    recipient_binding: int

    @classmethod
    def for_withdraw(
        cls, *, root: int, nullifier: int, amount: int, recipient: bytes, output_commitment: int = NO_CHANGE
    ) -> "PublicInputs":
        return cls(
            root=root,
            nullifier=nullifier,
            output_commitment=output_commitment,
            amount=amount,
            recipient_binding=recipient_binding(recipient),
        )

    def validate(self) -> None:
        """Every input must be a canonical Fr element; amount must fit a u64."""
        for name in ("root", "nullifier", "output_commitment", "recipient_binding"):
            if not is_canonical(getattr(self, name)):
                raise InvalidPublicInputEncoding(f"{name} is not a canonical field element", field=name)
        if not is_canonical(self.amount) or self.amount > MAX_AMOUNT:
            raise InvalidPublicInputEncoding("amount does not fit a u64", field="amount")

    def to_field_list(self) -> List[int]:
        return [self.root, self.nullifier, self.output_commitment, self.amount, self.recipient_binding]

    def encode(self) -> bytes:
        """Concatenated 32-byte big-endian encodings, in verifier order."""
        return b"".join(field_to_bytes(v) for v in self.to_field_list())


@runtime_checkable
class ProofVerifier(Protocol):
    def verify(self, proof: bytes, public_inputs: PublicInputs) -> bool: ...


# ---------------------------
# Proof bytes
# ---------------------------


def _limb(b: bytes, off: int) -> int:
    v = int.from_bytes(b[off : off + FIELD_BYTES], "big")
    if v >= FIELD_MODULUS:
        raise ValueError(f"coordinate at byte {off} is not below the base field modulus")
    return v


def decode_proof(data: bytes) -> g16.Proof:
    """
    Parse 256 proof bytes into curve points. Raises ValueError on a wrong
    length, non-canonical coordinate, off-curve point or G2 point outside the
    prime-order subgroup.
    """
    b = bytes(data)
    if len(b) != PROOF_SIZE:
        raise ValueError(f"proof must be {PROOF_SIZE} bytes, got {len(b)}")
    ax, ay = _limb(b, 0), _limb(b, 32)
    bx1, bx0, by1, by0 = _limb(b, 64), _limb(b, 96), _limb(b, 128), _limb(b, 160)
    cx, cy = _limb(b, 192), _limb(b, 224)
    return g16.load_proof(
        {
            "pi_a": [ax, ay],
            "pi_b": [[bx0, bx1], [by0, by1]],
            "pi_c": [cx, cy],
        }
    )


def encode_proof(proof: g16.Proof) -> bytes:
    """Inverse of `decode_proof`."""

    def be(v: int) -> bytes:
        return v.to_bytes(FIELD_BYTES, "big")

    a = normalize_g1(proof.A) or (0, 0)
    c = normalize_g1(proof.C) or (0, 0)
    q = normalize_g2(proof.B) or ((0, 0), (0, 0))
    (x0, x1), (y0, y1) = q
    return be(a[0]) + be(a[1]) + be(x1) + be(x0) + be(y1) + be(y0) + be(c[0]) + be(c[1])


def proof_from_snarkjs(proof_json: Mapping[str, Any]) -> bytes:
    """snarkjs `proof.json` -> 256 proof bytes (points are validated on the way)."""
    return encode_proof(g16.load_proof(proof_json))


# ---------------------------
# Groth16 verifier
# ---------------------------


class Groth16Verifier:
    """
    BN254 Groth16 `ProofVerifier` bound to one verifying key.

    The key must expect exactly five public inputs.
    """

    def __init__(self, vk: g16.VerifyingKey):
        if vk.n_public != N_PUBLIC_INPUTS:
            raise InvalidConfig(
                f"verifying key expects {vk.n_public} public inputs, withdraw needs {N_PUBLIC_INPUTS}",
                n_public=vk.n_public,
            )
        self.vk = vk

    @classmethod
    def from_json(cls, vk_json: Mapping[str, Any]) -> "Groth16Verifier":
        try:
            return cls(g16.load_vk(vk_json))
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise InvalidConfig(f"malformed verifying key: {e}") from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Groth16Verifier":
        try:
            return cls(g16.load_vk_file(str(path)))
        except OSError as e:
            raise InvalidConfig(f"cannot read verifying key {path}: {e}", path=str(path)) from e
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise InvalidConfig(f"malformed verifying key {path}: {e}", path=str(path)) from e

    @classmethod
    def from_config(cls, cfg: Any) -> "Groth16Verifier":
        vk_path: Optional[Path] = getattr(cfg, "vk_path", None)
        if not vk_path:
            raise InvalidConfig("no verifying key configured (set ZKCASH_VK_PATH or vk_path)")
        return cls.from_file(vk_path)

    def verify(self, proof: bytes, public_inputs: PublicInputs) -> bool:
        inputs: Sequence[int] = public_inputs.to_field_list()
        if len(inputs) != self.vk.n_public:
            return False
        try:
            decoded = decode_proof(proof)
        except (ValueError, TypeError) as e:
            log.debug("proof rejected while decoding", extra={"reason": str(e)})
            return False
        ok = g16.verify(self.vk, decoded, inputs)
        if not ok:
            log.debug("groth16 pairing check failed")
        return ok


__all__ = [
    "PROOF_SIZE",
    "N_PUBLIC_INPUTS",
    "NO_CHANGE",
    "MAX_AMOUNT",
    "recipient_binding",
    "PublicInputs",
    "ProofVerifier",
    "decode_proof",
    "encode_proof",
    "proof_from_snarkjs",
    "Groth16Verifier",
]
