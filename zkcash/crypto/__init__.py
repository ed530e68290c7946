"""
zkcash.crypto — field, Poseidon and BN254 Groth16 primitives.

Submodules
----------
- `zkcash.crypto.field`          canonical Fr encoding at the boundary
- `zkcash.crypto.poseidon`       circom-compatible Poseidon (node and note hash)
- `zkcash.crypto.pairing_bn254`  py_ecc point handling and pairing products
- `zkcash.crypto.groth16_bn254`  snarkjs-compatible Groth16 verification

Only the hash surface is re-exported here (the sponge as `poseidon_hash`,
so the `poseidon` submodule stays reachable); import the pairing modules
directly.
"""

from __future__ import annotations

from .field import FIELD_BYTES, P, R, field_from_bytes, field_to_bytes, to_field, to_hex
from .poseidon import hash1, hash2, hash_bytes_be, hash_left_right
from .poseidon import poseidon as poseidon_hash

__all__ = [
    "FIELD_BYTES",
    "P",
    "R",
    "field_from_bytes",
    "field_to_bytes",
    "to_field",
    "to_hex",
    "poseidon_hash",
    "hash1",
    "hash2",
    "hash_left_right",
    "hash_bytes_be",
]
