"""
zkcash — shielded pool core.

Depositors *shield* plaintext funds by appending a Poseidon note commitment
to an append-only Merkle accumulator; spenders *withdraw* by presenting a
Groth16 (BN254) proof that binds a recent root, a nullifier, an optional
change commitment, the amount and the recipient.

Layout
------
- `zkcash.crypto`       field encoding, circom Poseidon, BN254 Groth16
- `zkcash.merkle`       MerkleAccumulator (frontier insert + root history)
- `zkcash.nullifiers`   NullifierRegistry (write-once set)
- `zkcash.verifier`     ProofVerifier protocol, PublicInputs, Groth16Verifier
- `zkcash.processor`    Initialize / Shield / Withdraw handlers
- `zkcash.instruction`  instruction payload codec
- `zkcash.ledger`       in-memory host with atomic execution
- `zkcash.note`         commitment / nullifier derivation for note owners

Quick start
-----------
>>> from zkcash import Ledger, Note
>>> ledger = Ledger()
>>> ledger.initialize(20)
>>> note = Note.random()
>>> ledger.credit(alice, 100)
>>> receipt = ledger.shield(alice, 100, note.commitment)
"""

from __future__ import annotations

from .errors import (
    AlreadyInitialized,
    CapacityExceeded,
    InsufficientFunds,
    InvalidAmount,
    InvalidProof,
    InvalidPublicInputEncoding,
    NotInitialized,
    NullifierAlreadyUsed,
    PoolError,
    PoolErrorCode,
    UnknownRoot,
)
from .ledger import Ledger
from .merkle import MerkleAccumulator
from .note import Note
from .nullifiers import NullifierRegistry
from .processor import process, process_initialize, process_shield, process_withdraw
from .state import PoolState
from .verifier import Groth16Verifier, ProofVerifier, PublicInputs
from .version import __version__

__all__ = [
    "__version__",
    "PoolError",
    "PoolErrorCode",
    "AlreadyInitialized",
    "NotInitialized",
    "CapacityExceeded",
    "UnknownRoot",
    "NullifierAlreadyUsed",
    "InvalidProof",
    "InvalidPublicInputEncoding",
    "InvalidAmount",
    "InsufficientFunds",
    "MerkleAccumulator",
    "NullifierRegistry",
    "ProofVerifier",
    "PublicInputs",
    "Groth16Verifier",
    "PoolState",
    "process",
    "process_initialize",
    "process_shield",
    "process_withdraw",
    "Ledger",
    "Note",
]
